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
"""Checkpoint and upscaler management services."""

from awslabs.sd_webui_mcp_server.consts import (
    OPTIONS_ENDPOINT,
    SD_MODELS_ENDPOINT,
    UPSCALERS_ENDPOINT,
)
from awslabs.sd_webui_mcp_server.models.common import SDModelInfo, UpscalerInfo
from awslabs.sd_webui_mcp_server.models.sd_models import SetModelParams
from awslabs.sd_webui_mcp_server.services.webui_client import SDWebUIClient
from loguru import logger
from typing import List


async def get_sd_models(client: SDWebUIClient) -> List[str]:
    """Return the titles of the checkpoints installed on the WebUI."""
    result = await client.get(SD_MODELS_ENDPOINT)
    models = [SDModelInfo.model_validate(entry) for entry in result or []]
    logger.info(f'Found {len(models)} Stable Diffusion model(s)')
    return [model.title for model in models]


async def set_sd_model(params: SetModelParams, client: SDWebUIClient) -> str:
    """Make ``params.model_name`` the active checkpoint.

    The WebUI loads the checkpoint before answering, so this can take a while.
    """
    logger.info(f'Setting active model to: {params.model_name}')
    await client.post(OPTIONS_ENDPOINT, {'sd_model_checkpoint': params.model_name})
    return f'Model set to: {params.model_name}'


async def get_sd_upscalers(client: SDWebUIClient) -> List[str]:
    """Return the names of the upscalers installed on the WebUI."""
    result = await client.get(UPSCALERS_ENDPOINT)
    upscalers = [UpscalerInfo.model_validate(entry) for entry in result or []]
    logger.info(f'Found {len(upscalers)} upscaler(s)')
    return [upscaler.name for upscaler in upscalers]
