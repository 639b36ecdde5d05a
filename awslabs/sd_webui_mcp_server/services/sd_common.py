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
"""Common utilities for the Stable Diffusion WebUI services.

This module provides the pieces shared by the tool services: output directory
resolution, PNG info lookups and writing returned images to disk.
"""

import os
import uuid
from awslabs.sd_webui_mcp_server.consts import (
    GENERATED_FILENAME_PREFIX,
    PNG_INFO_ENDPOINT,
    UPSCALED_FILENAME_PREFIX,
)
from awslabs.sd_webui_mcp_server.services.webui_client import SDWebUIClient
from awslabs.sd_webui_mcp_server.utils.image_utils import (
    decode_base64_image,
    save_png_with_description,
    to_png_data_uri,
)
from loguru import logger
from typing import Optional


class EmptyResultError(Exception):
    """Raised when the WebUI answers successfully but returns no images."""


def resolve_output_dir(output_path: Optional[str], default_dir: str) -> str:
    """Return the directory a tool call writes to.

    A caller-supplied path is trimmed and normalized; otherwise the configured
    default is used.
    """
    if output_path:
        return os.path.normpath(output_path.strip())
    return default_dir


def ensure_output_dir(output_dir: str) -> str:
    """Create the output directory, including parents, if it does not exist.

    Raises:
        IOError: If the directory cannot be created.
    """
    try:
        if not os.path.exists(output_dir):
            os.makedirs(output_dir, exist_ok=True)
            logger.debug(f'Created output directory: {output_dir}')
    except Exception as e:
        raise IOError(f"Failed to create output directory {output_dir}: {str(e)}")
    return output_dir


async def fetch_png_info(client: SDWebUIClient, image_data: str) -> str:
    """Ask the WebUI for the generation parameters embedded in an image.

    Args:
        client: WebUI client.
        image_data: Base64 image data, with or without a data URI prefix.

    Returns:
        The parameters text, or an empty string if the image carries none.
    """
    result = await client.post(PNG_INFO_ENDPOINT, {'image': to_png_data_uri(image_data)})
    info = result.get('info') if isinstance(result, dict) else None
    return info if isinstance(info, str) else ''


def save_generated_image(image_data: str, output_dir: str, parameters: str) -> str:
    """Write a generated image as ``sd_<uuid>.png`` with its parameters embedded.

    Returns:
        Path of the written file.
    """
    output_path = os.path.join(output_dir, f'{GENERATED_FILENAME_PREFIX}_{uuid.uuid4()}.png')
    save_png_with_description(decode_base64_image(image_data), output_path, parameters)
    logger.debug(f'Saved generated image to: {output_path}')
    return output_path


def save_upscaled_image(image_data: str, output_dir: str, source_path: str) -> str:
    """Write an upscaled image as ``upscaled_<source basename>``.

    Returns:
        Path of the written file.
    """
    output_path = os.path.join(
        output_dir, f'{UPSCALED_FILENAME_PREFIX}_{os.path.basename(source_path)}'
    )
    with open(output_path, 'wb') as file:
        file.write(decode_base64_image(image_data))
    logger.debug(f'Saved upscaled image to: {output_path}')
    return output_path
