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
"""Upscaling service for the Stable Diffusion WebUI extras endpoint.

This module sends a batch of local images to ``/sdapi/v1/extra-batch-images`` and
writes the upscaled results next to each other in the output directory.
"""

import os
from anyio import to_thread
from awslabs.sd_webui_mcp_server.config import SDWebUIConfig
from awslabs.sd_webui_mcp_server.consts import (
    EXTRA_BATCH_IMAGES_ENDPOINT,
    UPSCALE_FIXED_FIELDS,
)
from awslabs.sd_webui_mcp_server.models.common import UpscaledImage
from awslabs.sd_webui_mcp_server.models.sd_models import UpscaleImagesParams
from awslabs.sd_webui_mcp_server.services.sd_common import (
    EmptyResultError,
    ensure_output_dir,
    resolve_output_dir,
    save_upscaled_image,
)
from awslabs.sd_webui_mcp_server.services.webui_client import SDWebUIClient
from awslabs.sd_webui_mcp_server.utils.image_utils import encode_image_file
from loguru import logger
from typing import Any, Dict, List


def encode_image_list(image_paths: List[str]) -> List[Dict[str, str]]:
    """Read and base64-encode each image for the ``imageList`` field.

    Raises:
        FileNotFoundError: If an image does not exist.
        IOError: If an image cannot be read.
    """
    return [
        {'data': encode_image_file(image_path), 'name': os.path.basename(image_path)}
        for image_path in image_paths
    ]


def build_upscale_request(
    params: UpscaleImagesParams,
    image_list: List[Dict[str, str]],
    config: SDWebUIConfig,
) -> Dict[str, Any]:
    """Build the extra-batch-images request body.

    Absent arguments take the configured upscale defaults; the face restoration and
    ordering fields are fixed.

    Args:
        params: Validated upscale_images arguments.
        image_list: Encoded images as produced by encode_image_list.
        config: Server configuration holding the upscale defaults.

    Returns:
        Dictionary containing the formatted API request body.
    """
    resize_mode = config.resize_mode if params.resize_mode is None else int(params.resize_mode)

    def _pick(value: Any, default: Any) -> Any:
        return default if value is None else value

    request_body: Dict[str, Any] = {
        'resize_mode': resize_mode,
        **UPSCALE_FIXED_FIELDS,
        'upscaling_resize': _pick(params.upscaling_resize, config.upscale_multiplier),
        'upscaling_resize_w': _pick(params.upscaling_resize_w, config.upscale_width),
        'upscaling_resize_h': _pick(params.upscaling_resize_h, config.upscale_height),
        'upscaler_1': _pick(params.upscaler_1, config.upscaler_1),
        'upscaler_2': _pick(params.upscaler_2, config.upscaler_2),
        'imageList': image_list,
    }

    logger.debug(f'Built upscale request with resize_mode: {resize_mode}')
    return request_body


async def upscale_images(
    params: UpscaleImagesParams,
    client: SDWebUIClient,
    config: SDWebUIConfig,
) -> List[UpscaledImage]:
    """Upscale a batch of images.

    Response image *i* is written as ``upscaled_<basename of images[i]>``. Files
    written before a failure are left in place.

    Args:
        params: Validated upscale_images arguments.
        client: WebUI client.
        config: Server configuration.

    Returns:
        One UpscaledImage per input image, in input order.

    Raises:
        EmptyResultError: If the WebUI returned no images.
        SDWebUIAPIError: On API failures.
        IOError: If an input cannot be read or an output cannot be written.
    """
    logger.info(f'Upscaling {len(params.images)} image(s)')

    output_dir = ensure_output_dir(resolve_output_dir(params.output_path, config.output_dir))
    image_list = await to_thread.run_sync(encode_image_list, params.images)
    request_body = build_upscale_request(params, image_list, config)

    result = await client.post(EXTRA_BATCH_IMAGES_ENDPOINT, request_body)
    images = (result or {}).get('images') or []
    if not images:
        raise EmptyResultError('No images upscaled')

    if len(images) != len(params.images):
        logger.warning(
            f'WebUI returned {len(images)} image(s) for {len(params.images)} input(s)',
            extra={'returned': len(images), 'requested': len(params.images)},
        )

    upscaled: List[UpscaledImage] = []
    for source_path, image_data in zip(params.images, images):
        path = await to_thread.run_sync(save_upscaled_image, image_data, output_dir, source_path)
        upscaled.append(UpscaledImage(path=path))

    logger.info(
        f'Upscale completed: {len(upscaled)} image(s) saved',
        extra={'output_dir': output_dir},
    )
    return upscaled
