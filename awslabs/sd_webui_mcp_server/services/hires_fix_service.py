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
"""Hires fix service built on the WebUI img2img endpoint.

The img2img request is dispatched in the background and never awaited by the tool
call: the WebUI writes the result to its own output directory when it finishes.
"""

import asyncio
import base64
import math
import re
from anyio import to_thread
from awslabs.sd_webui_mcp_server.consts import (
    DEFAULT_CFG_SCALE,
    DEFAULT_DENOISING_STRENGTH,
    DEFAULT_HR_SCALE,
    DEFAULT_NEGATIVE_PROMPT,
    DEFAULT_SAMPLER,
    DEFAULT_SCHEDULER,
    DEFAULT_STEPS,
    HIRES_DISPATCH_TIMEOUT,
    IMG2IMG_ENDPOINT,
)
from awslabs.sd_webui_mcp_server.models.sd_models import HiresFixParams, Number
from awslabs.sd_webui_mcp_server.services.sd_common import fetch_png_info
from awslabs.sd_webui_mcp_server.services.webui_client import SDWebUIAPIError, SDWebUIClient
from awslabs.sd_webui_mcp_server.utils.image_utils import (
    get_image_dimensions,
    to_png_data_uri,
)
from loguru import logger
from typing import Any, Dict, Optional, Set, Tuple


# Prompt text precedes either the negative prompt line or the settings line.
_PROMPT_PATTERN = re.compile(r'^(.+?)(?:\nNegative prompt:|Steps:)', re.DOTALL)

# Strong references to in-flight dispatches until their done callback runs.
_background_tasks: Set['asyncio.Task[Any]'] = set()


def extract_prompt_from_info(info: Any) -> Optional[str]:
    """Extract the positive prompt from a WebUI parameters string.

    The parameters text written by the WebUI starts with the prompt, followed by
    an optional ``Negative prompt:`` line and a ``Steps:`` settings line. The format
    is not a stable contract, so this is best effort.

    Args:
        info: Parameters text as returned by ``/sdapi/v1/png-info``.

    Returns:
        The stripped prompt, or None if the text does not match.
    """
    if not isinstance(info, str):
        return None
    match = _PROMPT_PATTERN.match(info)
    return match.group(1).strip() if match else None


def scale_dimension(size: int, scale: Number) -> int:
    """Scale a pixel dimension, rounding halves up."""
    return int(math.floor(size * scale + 0.5))


def build_img2img_request(
    params: HiresFixParams,
    init_image: str,
    prompt: str,
    width: int,
    height: int,
) -> Dict[str, Any]:
    """Build the img2img request body for a hires fix pass.

    Args:
        params: Validated hires_fix_image arguments.
        init_image: Source image as a PNG data URI.
        prompt: Prompt recovered from the source image, possibly empty.
        width: Target width in pixels.
        height: Target height in pixels.

    Returns:
        Dictionary containing the formatted API request body.
    """
    return {
        'init_images': [init_image],
        'prompt': prompt,
        'negative_prompt': DEFAULT_NEGATIVE_PROMPT,
        'steps': DEFAULT_STEPS if params.steps is None else params.steps,
        'cfg_scale': DEFAULT_CFG_SCALE,
        'width': width,
        'height': height,
        'denoising_strength': (
            DEFAULT_DENOISING_STRENGTH
            if params.denoising_strength is None
            else params.denoising_strength
        ),
        'sampler_name': DEFAULT_SAMPLER,
        'scheduler': DEFAULT_SCHEDULER,
    }


def _ignore_dispatch_outcome(task: 'asyncio.Task[Any]') -> None:
    """Done callback for background img2img dispatches.

    The outcome is intentionally discarded: the short timeout is expected to fire
    long before the WebUI finishes, and any other failure is not reported either.
    Retrieving the exception keeps asyncio from logging it as never retrieved.
    """
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f'Hires fix dispatch finished without a response: {exc}')


def dispatch_img2img(client: SDWebUIClient, payload: Dict[str, Any]) -> 'asyncio.Task[Any]':
    """Start the img2img request as a background task and return without awaiting it."""
    task = asyncio.create_task(
        client.post(IMG2IMG_ENDPOINT, payload, timeout=HIRES_DISPATCH_TIMEOUT)
    )
    _background_tasks.add(task)
    task.add_done_callback(_ignore_dispatch_outcome)
    return task


async def recover_prompt(client: SDWebUIClient, image_data: str) -> str:
    """Recover the original prompt of an image, or an empty string."""
    try:
        info = await fetch_png_info(client, image_data)
    except SDWebUIAPIError as e:
        logger.debug(f'Could not read PNG info from source image: {e}')
        return ''
    return extract_prompt_from_info(info) or ''


def load_source_image(image_path: str) -> Tuple[str, Tuple[int, int]]:
    """Read the source image and return it as base64 with its (width, height).

    Raises:
        IOError: If the file cannot be read.
        ValueError: If the file is not an image.
    """
    with open(image_path, 'rb') as image_file:
        image_bytes = image_file.read()
    return base64.b64encode(image_bytes).decode('utf-8'), get_image_dimensions(image_bytes)


async def hires_fix_image(params: HiresFixParams, client: SDWebUIClient) -> str:
    """Send an image through img2img at a higher resolution.

    Workflow:
    1. Read the source image and compute the target size
    2. Recover the original prompt from the image's PNG info (best effort)
    3. Dispatch the img2img request in the background
    4. Return a description of the request without waiting for it

    Args:
        params: Validated hires_fix_image arguments.
        client: WebUI client.

    Returns:
        A message describing the dispatched request.

    Raises:
        IOError: If the source image cannot be read.
        ValueError: If the source file is not an image.
    """
    image_base64, (source_width, source_height) = await to_thread.run_sync(
        load_source_image, params.image_path
    )
    init_image = to_png_data_uri(image_base64)

    scale = DEFAULT_HR_SCALE if params.hr_scale is None else params.hr_scale
    target_width = scale_dimension(source_width, scale)
    target_height = scale_dimension(source_height, scale)

    prompt = await recover_prompt(client, image_base64)

    if params.hr_upscaler:
        logger.debug(f'hr_upscaler {params.hr_upscaler!r} is not used by img2img')

    payload = build_img2img_request(params, init_image, prompt, target_width, target_height)
    dispatch_img2img(client, payload)

    logger.info(
        f'Hires fix dispatched: {source_width}x{source_height} -> {target_width}x{target_height}',
        extra={'image_path': params.image_path, 'scale': scale, 'has_prompt': bool(prompt)},
    )
    return (
        f'Hires.fix request sent to Stable Diffusion ({scale}x upscale from '
        f'{source_width}x{source_height} to {target_width}x{target_height}). '
        'The image will be saved to the SD output directory when processing completes. '
        'This will take a while on CPU.'
    )
