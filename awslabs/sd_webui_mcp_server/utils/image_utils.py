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
"""Image processing utilities for encoding, decoding, and metadata embedding."""

import base64
import os
from awslabs.sd_webui_mcp_server.consts import PNG_DATA_URI_PREFIX
from io import BytesIO
from PIL import Image
from typing import Tuple


# EXIF IFD0 ImageDescription
IMAGE_DESCRIPTION_TAG = 0x010E


def encode_image_file(file_path: str) -> str:
    """Return the raw base64 of a local image, as placed in an upscale ``imageList`` entry.

    Raises:
        FileNotFoundError: If the file does not exist.
        IOError: If the file cannot be read.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Image file not found: {file_path}")

    try:
        with open(file_path, 'rb') as image_file:
            return base64.b64encode(image_file.read()).decode('utf-8')
    except IOError as e:
        raise IOError(f"Failed to read image file {file_path}: {str(e)}")


def strip_data_uri(image_data: str) -> str:
    """Return the base64 part of a ``data:`` URI, or the input if it has no prefix."""
    if image_data.startswith('data:') and ',' in image_data:
        return image_data.split(',', 1)[1]
    return image_data


def to_png_data_uri(base64_data: str) -> str:
    """Wrap base64 image data in a PNG data URI as the WebUI expects for uploads."""
    return f'{PNG_DATA_URI_PREFIX}{strip_data_uri(base64_data)}'


def decode_base64_image(base64_str: str) -> bytes:
    """Decode an image returned by the WebUI, which may or may not carry a data URI prefix.

    Raises:
        ValueError: If the data is not valid base64.
    """
    try:
        return base64.b64decode(strip_data_uri(base64_str))
    except Exception as e:
        raise ValueError(f"Failed to decode base64 image: {str(e)}")


def get_image_dimensions(image_data: bytes) -> Tuple[int, int]:
    """Return the natural (width, height) of an encoded image.

    Raises:
        ValueError: If the data is not a readable image.
    """
    try:
        with Image.open(BytesIO(image_data)) as image:
            return image.size
    except Exception as e:
        raise ValueError(f"Failed to read image dimensions: {str(e)}")


def save_png_with_description(image_data: bytes, output_path: str, description: str) -> str:
    """Write image bytes as a PNG with ``description`` in the EXIF ImageDescription tag.

    Args:
        image_data: Encoded image bytes as returned by the WebUI.
        output_path: Destination file path.
        description: Text to embed, typically the generation parameters.

    Returns:
        The path written to.

    Raises:
        ValueError: If the data is not a readable image.
        IOError: If the file cannot be written.
    """
    try:
        image = Image.open(BytesIO(image_data))
        image.load()
    except Exception as e:
        raise ValueError(f"Failed to decode image data: {str(e)}")

    exif = image.getexif()
    exif[IMAGE_DESCRIPTION_TAG] = description
    image.save(output_path, format='PNG', exif=exif)
    return output_path
