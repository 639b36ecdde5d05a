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
"""Pydantic models for Stable Diffusion WebUI tool arguments.

Each model turns the untyped argument mapping of a tool call into a validated
structure, or raises ``pydantic.ValidationError`` before any network or
filesystem access happens.
"""

import math
from awslabs.sd_webui_mcp_server.consts import (
    MAX_BATCH_SIZE,
    MAX_HR_SCALE,
    MAX_STEPS,
    MIN_BATCH_SIZE,
    MIN_HR_SCALE,
    MIN_STEPS,
    MIN_UPSCALE_VALUE,
)
from awslabs.sd_webui_mcp_server.models.common import ResizeMode
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional, Union


Number = Union[int, float]


def coerce_number(value: Any) -> Number:
    """Convert a number or numeric string to an int or float.

    Integral values become ``int`` so payloads carry ``20`` rather than ``20.0``.

    Args:
        value: Raw argument value.

    Returns:
        The numeric value.

    Raises:
        ValueError: If the value is not numeric or not finite.
    """
    if isinstance(value, bool):
        raise ValueError('must be a number, not a boolean')
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValueError(f'must be a number, got {value!r}')
    else:
        raise ValueError(f'must be a number, got {type(value).__name__}')

    if not math.isfinite(number):
        raise ValueError('must be a finite number')
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def check_range(
    value: Optional[Number],
    minimum: Optional[Number] = None,
    maximum: Optional[Number] = None,
) -> Optional[Number]:
    """Reject values outside the closed interval [minimum, maximum]."""
    if value is None:
        return value
    if minimum is not None and value < minimum:
        raise ValueError(f'must be greater than or equal to {minimum}')
    if maximum is not None and value > maximum:
        raise ValueError(f'must be less than or equal to {maximum}')
    return value


class GenerateImageParams(BaseModel):
    """Arguments of the ``generate_image`` tool.

    Only ``steps`` and ``batch_size`` are range checked; the other numeric fields are
    coerced and left for the WebUI to judge.

    Attributes:
        prompt: Text description of the image to generate.
        negative_prompt: Things to exclude from the image.
        steps: Sampling steps (1-150).
        width: Image width in pixels.
        height: Image height in pixels.
        cfg_scale: Classifier free guidance scale.
        sampler_name: Sampling algorithm.
        scheduler_name: Noise schedule.
        seed: Random seed, -1 for random.
        batch_size: Number of images to generate (1-4), sent as ``n_iter``.
        restore_faces: Enable face restoration.
        tiling: Generate tileable images.
        distilled_cfg_scale: Distilled guidance scale used by Flux checkpoints.
        output_path: Directory to write the images to.
    """
    prompt: str = Field(..., min_length=1)
    negative_prompt: Optional[str] = None
    steps: Optional[Number] = None
    width: Optional[Number] = None
    height: Optional[Number] = None
    cfg_scale: Optional[Number] = None
    sampler_name: Optional[str] = None
    scheduler_name: Optional[str] = None
    seed: Optional[Number] = None
    batch_size: Optional[Number] = None
    restore_faces: Optional[bool] = None
    tiling: Optional[bool] = None
    distilled_cfg_scale: Optional[Number] = None
    output_path: Optional[str] = None

    @field_validator(
        'steps',
        'width',
        'height',
        'cfg_scale',
        'seed',
        'batch_size',
        'distilled_cfg_scale',
        mode='before',
    )
    @classmethod
    def coerce_numeric(cls, v: Any) -> Optional[Number]:
        """Coerce numeric strings to numbers."""
        return None if v is None else coerce_number(v)

    @field_validator('steps')
    @classmethod
    def validate_steps(cls, v: Optional[Number]) -> Optional[Number]:
        """Validate sampling steps bounds."""
        return check_range(v, MIN_STEPS, MAX_STEPS)

    @field_validator('batch_size')
    @classmethod
    def validate_batch_size(cls, v: Optional[Number]) -> Optional[Number]:
        """Validate batch size bounds."""
        return check_range(v, MIN_BATCH_SIZE, MAX_BATCH_SIZE)


class SetModelParams(BaseModel):
    """Arguments of the ``set_sd_model`` tool.

    Attributes:
        model_name: Checkpoint title to make active.
    """
    model_config = ConfigDict(protected_namespaces=())

    model_name: str


class UpscaleImagesParams(BaseModel):
    """Arguments of the ``upscale_images`` tool.

    ``resize_mode`` selects which of the sizing fields the WebUI honours: the
    multiplier in mode 0, the target width and height in mode 1.

    Attributes:
        images: Paths of the images to upscale, in order.
        resize_mode: The string "0" or "1", stored as a ResizeMode.
        upscaling_resize: Upscale multiplier.
        upscaling_resize_w: Target width in pixels.
        upscaling_resize_h: Target height in pixels.
        upscaler_1: Primary upscaler model.
        upscaler_2: Secondary upscaler model.
        output_path: Directory to write the upscaled images to.
    """
    images: List[str] = Field(..., min_length=1)
    resize_mode: Optional[ResizeMode] = None
    upscaling_resize: Optional[Number] = None
    upscaling_resize_w: Optional[Number] = None
    upscaling_resize_h: Optional[Number] = None
    upscaler_1: Optional[str] = None
    upscaler_2: Optional[str] = None
    output_path: Optional[str] = None

    @field_validator('images')
    @classmethod
    def validate_images(cls, v: List[str]) -> List[str]:
        """Reject empty image paths."""
        for i, image in enumerate(v):
            if not image:
                raise ValueError(f'image path at index {i} is empty')
        return v

    @field_validator('resize_mode', mode='before')
    @classmethod
    def validate_resize_mode(cls, v: Any) -> Optional[ResizeMode]:
        """Accept only the literal strings "0" and "1"."""
        if v is None:
            return v
        if not isinstance(v, str) or v not in ('0', '1'):
            raise ValueError("resize_mode must be the string '0' or '1'")
        return ResizeMode(int(v))

    @field_validator('upscaling_resize', 'upscaling_resize_w', 'upscaling_resize_h', mode='before')
    @classmethod
    def validate_upscale_values(cls, v: Any) -> Optional[Number]:
        """Coerce sizing fields and require them to be at least 1."""
        if v is None:
            return v
        return check_range(coerce_number(v), minimum=MIN_UPSCALE_VALUE)


class HiresFixParams(BaseModel):
    """Arguments of the ``hires_fix_image`` tool.

    Attributes:
        image_path: Path of the image to re-generate at a higher resolution.
        hr_scale: Upscale factor (1-4).
        hr_upscaler: Upscaler name; accepted for compatibility, img2img has no such field.
        denoising_strength: How much to alter the image (0-1).
        steps: Sampling steps (1-150).
    """
    image_path: str
    hr_scale: Optional[Number] = None
    hr_upscaler: Optional[str] = None
    denoising_strength: Optional[Number] = None
    steps: Optional[Number] = None

    @field_validator('hr_scale', mode='before')
    @classmethod
    def validate_hr_scale(cls, v: Any) -> Optional[Number]:
        """Validate upscale factor bounds."""
        if v is None:
            return v
        return check_range(coerce_number(v), MIN_HR_SCALE, MAX_HR_SCALE)

    @field_validator('denoising_strength', mode='before')
    @classmethod
    def validate_denoising_strength(cls, v: Any) -> Optional[Number]:
        """Validate denoising strength bounds."""
        if v is None:
            return v
        return check_range(coerce_number(v), 0, 1)

    @field_validator('steps', mode='before')
    @classmethod
    def validate_steps(cls, v: Any) -> Optional[Number]:
        """Validate sampling steps bounds."""
        if v is None:
            return v
        return check_range(coerce_number(v), MIN_STEPS, MAX_STEPS)
