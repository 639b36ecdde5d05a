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
"""Tests for the image utilities."""

import base64
import os
import pytest
from awslabs.sd_webui_mcp_server.utils.image_utils import (
    IMAGE_DESCRIPTION_TAG,
    decode_base64_image,
    encode_image_file,
    get_image_dimensions,
    save_png_with_description,
    strip_data_uri,
    to_png_data_uri,
)
from io import BytesIO
from PIL import Image


def create_test_image_bytes(width=32, height=16, color='green'):
    """Create a valid PNG and return its bytes."""
    img = Image.new('RGB', (width, height), color=color)
    buffer = BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


class TestDataUri:
    """Tests for data URI handling."""

    def test_strip_data_uri(self):
        """Test that the data URI prefix is removed."""
        assert strip_data_uri('data:image/png;base64,AAAA') == 'AAAA'

    def test_strip_plain_base64(self):
        """Test that plain base64 is returned unchanged."""
        assert strip_data_uri('AAAA') == 'AAAA'

    def test_to_png_data_uri(self):
        """Test wrapping, without doubling an existing prefix."""
        assert to_png_data_uri('AAAA') == 'data:image/png;base64,AAAA'
        assert to_png_data_uri('data:image/png;base64,AAAA') == 'data:image/png;base64,AAAA'

    def test_decode_with_prefix(self):
        """Test decoding base64 with a data URI prefix."""
        raw = create_test_image_bytes()
        encoded = base64.b64encode(raw).decode('utf-8')
        assert decode_base64_image(f'data:image/png;base64,{encoded}') == raw
        assert decode_base64_image(encoded) == raw

    def test_decode_invalid(self):
        """Test that invalid base64 raises ValueError."""
        with pytest.raises(ValueError):
            decode_base64_image('not base64!')


class TestImageFiles:
    """Tests for reading and writing image files."""

    def test_encode_image_file(self, temp_workspace_dir):
        """Test encoding an image file."""
        raw = create_test_image_bytes()
        path = os.path.join(temp_workspace_dir, 'in.png')
        with open(path, 'wb') as f:
            f.write(raw)
        assert base64.b64decode(encode_image_file(path)) == raw

    def test_encode_missing_file(self, temp_workspace_dir):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            encode_image_file(os.path.join(temp_workspace_dir, 'missing.png'))

    def test_get_image_dimensions(self):
        """Test reading the natural image size."""
        assert get_image_dimensions(create_test_image_bytes(width=40, height=30)) == (40, 30)

    def test_get_image_dimensions_invalid(self):
        """Test that non-image data raises ValueError."""
        with pytest.raises(ValueError):
            get_image_dimensions(b'not an image')

    def test_save_png_with_description(self, temp_workspace_dir):
        """Test that the description is embedded as EXIF ImageDescription."""
        path = os.path.join(temp_workspace_dir, 'out.png')
        description = 'a lighthouse\nSteps: 20, Sampler: Euler'

        save_png_with_description(create_test_image_bytes(), path, description)

        with Image.open(path) as image:
            assert image.format == 'PNG'
            assert image.size == (32, 16)
            assert image.getexif()[IMAGE_DESCRIPTION_TAG] == description

    def test_save_invalid_image(self, temp_workspace_dir):
        """Test that undecodable image data raises ValueError and writes nothing."""
        path = os.path.join(temp_workspace_dir, 'out.png')
        with pytest.raises(ValueError):
            save_png_with_description(b'garbage', path, 'info')
        assert not os.path.exists(path)
