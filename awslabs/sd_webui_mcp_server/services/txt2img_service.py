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
"""Service implementation for text-to-image generation.

This module builds txt2img requests for the Stable Diffusion WebUI and saves the
returned images with their generation parameters embedded.
"""

from anyio import to_thread
from awslabs.sd_webui_mcp_server.config import SDWebUIConfig
from awslabs.sd_webui_mcp_server.consts import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CFG_SCALE,
    DEFAULT_DISTILLED_CFG_SCALE,
    DEFAULT_HEIGHT,
    DEFAULT_NEGATIVE_PROMPT,
    DEFAULT_SAMPLER,
    DEFAULT_SCHEDULER,
    DEFAULT_SEED,
    DEFAULT_STEPS,
    DEFAULT_WIDTH,
    TXT2IMG_ENDPOINT,
)
from awslabs.sd_webui_mcp_server.models.common import GeneratedImage
from awslabs.sd_webui_mcp_server.models.sd_models import GenerateImageParams
from awslabs.sd_webui_mcp_server.services.sd_common import (
    EmptyResultError,
    ensure_output_dir,
    fetch_png_info,
    resolve_output_dir,
    save_generated_image,
)
from awslabs.sd_webui_mcp_server.services.webui_client import SDWebUIClient
from loguru import logger
from typing import Any, Dict, List


def _default(value: Any, default: Any) -> Any:
    return default if value is None else value


def build_txt2img_request(params: GenerateImageParams) -> Dict[str, Any]:
    """Build the txt2img request body.

    Every field the WebUI expects is present; absent arguments take their defaults.

    Args:
        params: Validated generate_image arguments.

    Returns:
        Dictionary containing the formatted API request body.
    """
    request_body: Dict[str, Any] = {
        'prompt': params.prompt,
        'negative_prompt': _default(params.negative_prompt, DEFAULT_NEGATIVE_PROMPT),
        'steps': _default(params.steps, DEFAULT_STEPS),
        'width': _default(params.width, DEFAULT_WIDTH),
        'height': _default(params.height, DEFAULT_HEIGHT),
        'cfg_scale': _default(params.cfg_scale, DEFAULT_CFG_SCALE),
        'sampler_name': _default(params.sampler_name, DEFAULT_SAMPLER),
        'scheduler': _default(params.scheduler_name, DEFAULT_SCHEDULER),
        'seed': _default(params.seed, DEFAULT_SEED),
        'n_iter': _default(params.batch_size, DEFAULT_BATCH_SIZE),
        'distilled_cfg_scale': _default(params.distilled_cfg_scale, DEFAULT_DISTILLED_CFG_SCALE),
        'tiling': bool(params.tiling),
        'restore_faces': bool(params.restore_faces),
    }

    logger.debug(f"Built txt2img request: {request_body['width']}x{request_body['height']}")
    return request_body


async def generate_image(
    params: GenerateImageParams,
    client: SDWebUIClient,
    config: SDWebUIConfig,
) -> List[GeneratedImage]:
    """Generate images from a text prompt.

    Workflow:
    1. Resolve and create the output directory
    2. Build the txt2img request body
    3. Invoke the WebUI
    4. For each returned image, look up its PNG info and save it with the info embedded

    Args:
        params: Validated generate_image arguments.
        client: WebUI client.
        config: Server configuration, for the default output directory.

    Returns:
        One GeneratedImage per returned image, in response order.

    Raises:
        EmptyResultError: If the WebUI returned no images.
        SDWebUIAPIError: On API failures.
        IOError: If the output directory or an image file cannot be written.
    """
    logger.info(
        'Generating image with txt2img',
        extra={
            'prompt_length': len(params.prompt),
            'steps': params.steps,
            'batch_size': params.batch_size,
        },
    )

    output_dir = ensure_output_dir(resolve_output_dir(params.output_path, config.output_dir))
    request_body = build_txt2img_request(params)

    result = await client.post(TXT2IMG_ENDPOINT, request_body)
    images = (result or {}).get('images') or []
    if not images:
        raise EmptyResultError('No images generated')

    generated: List[GeneratedImage] = []
    for image_data in images:
        parameters = await fetch_png_info(client, image_data)
        path = await to_thread.run_sync(save_generated_image, image_data, output_dir, parameters)
        generated.append(GeneratedImage(path=path, parameters=parameters))

    logger.info(
        f'txt2img generation successful: {len(generated)} image(s)',
        extra={'images_count': len(generated), 'output_dir': output_dir},
    )
    return generated
