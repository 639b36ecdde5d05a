# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tool call routing and error translation.

Every tool call goes through ``ToolRouter.dispatch``: the arguments are validated
into the tool's parameter model, the matching service runs, and its result is
serialized into a single text block. Any failure is translated into an
``McpError`` carrying the JSON-RPC error code the client sees.
"""

import json
from awslabs.sd_webui_mcp_server.config import SDWebUIConfig
from awslabs.sd_webui_mcp_server.models.sd_models import (
    GenerateImageParams,
    HiresFixParams,
    SetModelParams,
    UpscaleImagesParams,
)
from awslabs.sd_webui_mcp_server.services.hires_fix_service import hires_fix_image
from awslabs.sd_webui_mcp_server.services.model_service import (
    get_sd_models,
    get_sd_upscalers,
    set_sd_model,
)
from awslabs.sd_webui_mcp_server.services.txt2img_service import generate_image
from awslabs.sd_webui_mcp_server.services.upscale_service import upscale_images
from awslabs.sd_webui_mcp_server.services.webui_client import SDWebUIAPIError, SDWebUIClient
from loguru import logger
from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    CallToolResult,
    ErrorData,
    TextContent,
)
from pydantic import BaseModel, ValidationError
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type, TypeVar


ParamsT = TypeVar('ParamsT', bound=BaseModel)


class UnknownToolError(Exception):
    """Raised when a tool call names a tool the server does not expose."""

    def __init__(self, name: str):
        """Initialize UnknownToolError with the requested tool name."""
        self.name = name
        super().__init__(f'Unknown tool: {name}')


def _summarize_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors(include_url=False):
        location = '.'.join(str(part) for part in detail['loc']) or 'arguments'
        parts.append(f"{location}: {detail['msg']}")
    return '; '.join(parts)


class InvalidArgumentsError(Exception):
    """Raised when the arguments of a tool call fail validation.

    Only the caller's arguments are wrapped; validation failures on data returned
    by the WebUI stay plain ``ValidationError`` and are reported as internal errors.
    """

    def __init__(self, error: ValidationError):
        """Initialize InvalidArgumentsError from the pydantic validation error."""
        self.error = error
        super().__init__(f'Invalid parameters: {_summarize_validation_error(error)}')


def parse_arguments(model: Type[ParamsT], arguments: Mapping[str, Any]) -> ParamsT:
    """Validate tool call arguments into ``model``.

    Raises:
        InvalidArgumentsError: If the arguments are invalid.
    """
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        raise InvalidArgumentsError(e) from e


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_to_jsonable(item) for item in value]
    return value


def format_result(result: Any) -> str:
    """Serialize a tool result for the single text content block.

    Plain messages are returned as is; structured results are JSON encoded.
    """
    if isinstance(result, str):
        return result
    return json.dumps(_to_jsonable(result))


def to_mcp_error(error: Exception) -> McpError:
    """Translate a failure raised while handling a tool call.

    Args:
        error: The raised exception.

    Returns:
        McpError with METHOD_NOT_FOUND for unknown tools, INVALID_PARAMS for rejected
        arguments and INTERNAL_ERROR for everything else.
    """
    if isinstance(error, McpError):
        return error
    if isinstance(error, UnknownToolError):
        return McpError(ErrorData(code=METHOD_NOT_FOUND, message=str(error)))
    if isinstance(error, InvalidArgumentsError):
        return McpError(ErrorData(code=INVALID_PARAMS, message=str(error)))
    if isinstance(error, SDWebUIAPIError):
        return McpError(ErrorData(code=INTERNAL_ERROR, message=error.message))
    if isinstance(error, ValidationError):
        return McpError(
            ErrorData(
                code=INTERNAL_ERROR,
                message=f'Unexpected response from WebUI: {_summarize_validation_error(error)}',
            )
        )
    return McpError(ErrorData(code=INTERNAL_ERROR, message=str(error) or 'Unknown error occurred'))


class ToolRouter:
    """Dispatches tool calls to the Stable Diffusion WebUI services."""

    def __init__(self, client: SDWebUIClient, config: SDWebUIConfig):
        """Initialize the router.

        Args:
            client: Shared WebUI client.
            config: Server configuration.
        """
        self.client = client
        self.config = config
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], Awaitable[Any]]] = {
            'generate_image': self._generate_image,
            'get_sd_models': self._get_sd_models,
            'set_sd_model': self._set_sd_model,
            'get_sd_upscalers': self._get_sd_upscalers,
            'upscale_images': self._upscale_images,
            'hires_fix_image': self._hires_fix_image,
        }

    @property
    def tool_names(self) -> List[str]:
        """Names of the tools this router handles."""
        return list(self._handlers)

    async def call(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> Any:
        """Run a tool and return its unserialized result.

        Raises:
            UnknownToolError: If no tool has this name.
            InvalidArgumentsError: If the arguments are invalid.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownToolError(name)
        return await handler(arguments or {})

    async def dispatch(
        self, name: str, arguments: Optional[Mapping[str, Any]] = None
    ) -> CallToolResult:
        """Run a tool and wrap its result for the client.

        Raises:
            McpError: For any failure, with the translated error code.
        """
        logger.debug(f'MCP tool {name} called')
        try:
            result = await self.call(name, arguments)
        except InvalidArgumentsError as e:
            logger.warning(f'Invalid parameters for {name}: {_summarize_validation_error(e.error)}')
            raise to_mcp_error(e) from e
        except Exception as e:
            logger.error(f'Error in {name}: {str(e)}', extra={'error_type': type(e).__name__})
            raise to_mcp_error(e) from e

        return CallToolResult(content=[TextContent(type='text', text=format_result(result))])

    async def _generate_image(self, arguments: Mapping[str, Any]) -> Any:
        params = parse_arguments(GenerateImageParams, arguments)
        return await generate_image(params, self.client, self.config)

    async def _get_sd_models(self, arguments: Mapping[str, Any]) -> Any:
        return await get_sd_models(self.client)

    async def _set_sd_model(self, arguments: Mapping[str, Any]) -> Any:
        params = parse_arguments(SetModelParams, arguments)
        return await set_sd_model(params, self.client)

    async def _get_sd_upscalers(self, arguments: Mapping[str, Any]) -> Any:
        return await get_sd_upscalers(self.client)

    async def _upscale_images(self, arguments: Mapping[str, Any]) -> Any:
        params = parse_arguments(UpscaleImagesParams, arguments)
        return await upscale_images(params, self.client, self.config)

    async def _hires_fix_image(self, arguments: Mapping[str, Any]) -> Any:
        params = parse_arguments(HiresFixParams, arguments)
        return await hires_fix_image(params, self.client)
