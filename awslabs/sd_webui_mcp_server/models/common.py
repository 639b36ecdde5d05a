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
"""Common models shared across the Stable Diffusion WebUI tools."""

from enum import IntEnum
from pydantic import BaseModel, ConfigDict
from typing import Optional


class ResizeMode(IntEnum):
    """Upscale resize modes understood by the extras endpoint.

    Attributes:
        MULTIPLIER: Scale by ``upscaling_resize``.
        DIMENSIONS: Scale to ``upscaling_resize_w`` x ``upscaling_resize_h``.
    """
    MULTIPLIER = 0
    DIMENSIONS = 1


class GeneratedImage(BaseModel):
    """An image written by ``generate_image``.

    Attributes:
        path: Location of the PNG on the local filesystem.
        parameters: Generation parameters reported by the WebUI for this image.
    """
    path: str
    parameters: str


class UpscaledImage(BaseModel):
    """An image written by ``upscale_images``.

    Attributes:
        path: Location of the upscaled image on the local filesystem.
    """
    path: str


class SDModelInfo(BaseModel):
    """A checkpoint entry as listed by ``/sdapi/v1/sd-models``."""
    model_config = ConfigDict(extra='allow', protected_namespaces=())

    title: str
    model_name: Optional[str] = None
    hash: Optional[str] = None
    sha256: Optional[str] = None
    filename: Optional[str] = None
    config: Optional[str] = None


class UpscalerInfo(BaseModel):
    """An upscaler entry as listed by ``/sdapi/v1/upscalers``."""
    model_config = ConfigDict(extra='allow', protected_namespaces=())

    name: str
    model_name: Optional[str] = None
    model_path: Optional[str] = None
    model_url: Optional[str] = None
    scale: Optional[float] = None
