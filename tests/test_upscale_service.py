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
"""Tests for the upscale service."""

import base64
import os
import pytest
import threading
from awslabs.sd_webui_mcp_server.config import SDWebUIConfig
from awslabs.sd_webui_mcp_server.models.sd_models import UpscaleImagesParams
from awslabs.sd_webui_mcp_server.services import upscale_service
from awslabs.sd_webui_mcp_server.services.sd_common import EmptyResultError, save_upscaled_image
from awslabs.sd_webui_mcp_server.services.upscale_service import (
    build_upscale_request,
    encode_image_list,
    upscale_images,
)
from io import BytesIO
from PIL import Image
from unittest.mock import patch


def create_test_image_bytes(width=64, height=64, color='red'):
    """Create a valid PNG and return its bytes."""
    img = Image.new('RGB', (width, height), color=color)
    buffer = BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def create_test_image_base64(width=64, height=64, color='red'):
    """Create a valid PNG and return it as base64."""
    return base64.b64encode(create_test_image_bytes(width, height, color)).decode('utf-8')


@pytest.fixture
def two_images(temp_workspace_dir):
    """Two small PNGs named a.png and b.png; returns their paths."""
    paths = []
    for name, color in (('a.png', 'red'), ('b.png', 'blue')):
        path = os.path.join(temp_workspace_dir, name)
        with open(path, 'wb') as f:
            f.write(create_test_image_bytes(color=color))
        paths.append(path)
    return paths


class TestBuildUpscaleRequest:
    """Tests for the extra-batch-images request body."""

    def test_config_defaults(self, sd_config):
        """Test that absent arguments take the configured defaults."""
        image_list = [{'data': 'abc', 'name': 'a.png'}]

        body = build_upscale_request(UpscaleImagesParams(images=['a.png']), image_list, sd_config)

        assert body == {
            'resize_mode': 0,
            'show_extras_results': True,
            'gfpgan_visibility': 0,
            'codeformer_visibility': 0,
            'codeformer_weight': 0,
            'upscaling_crop': True,
            'upscale_first': False,
            'extras_upscaler_2_visibility': 0,
            'upscaling_resize': 4,
            'upscaling_resize_w': 512,
            'upscaling_resize_h': 512,
            'upscaler_1': 'R-ESRGAN 4x+',
            'upscaler_2': 'None',
            'imageList': image_list,
        }

    def test_environment_defaults(self):
        """Test that defaults come from the configuration, not constants."""
        config = SDWebUIConfig.from_env(
            {'SD_RESIZE_MODE': '1', 'SD_UPSCALE_WIDTH': '2048', 'SD_UPSCALER_1': 'Lanczos'}
        )

        body = build_upscale_request(UpscaleImagesParams(images=['a.png']), [], config)

        assert body['resize_mode'] == 1
        assert body['upscaling_resize_w'] == 2048
        assert body['upscaler_1'] == 'Lanczos'

    def test_arguments_override_defaults(self, sd_config):
        """Test that supplied arguments win over the configured defaults."""
        params = UpscaleImagesParams(
            images=['a.png'],
            resize_mode='1',
            upscaling_resize='2',
            upscaling_resize_w=1920,
            upscaling_resize_h=1080,
            upscaler_1='Lanczos',
            upscaler_2='ESRGAN_4x',
        )

        body = build_upscale_request(params, [], sd_config)

        assert body['resize_mode'] == 1
        assert type(body['resize_mode']) is int
        assert body['upscaling_resize'] == 2
        assert body['upscaling_resize_w'] == 1920
        assert body['upscaling_resize_h'] == 1080
        assert body['upscaler_1'] == 'Lanczos'
        assert body['upscaler_2'] == 'ESRGAN_4x'


class TestEncodeImageList:
    """Tests for encoding the input images."""

    def test_encodes_in_order(self, two_images):
        """Test that each image is encoded under its basename, in order."""
        image_list = encode_image_list(two_images)

        assert [entry['name'] for entry in image_list] == ['a.png', 'b.png']
        with open(two_images[0], 'rb') as f:
            assert image_list[0]['data'] == base64.b64encode(f.read()).decode('utf-8')

    def test_missing_file(self, temp_workspace_dir):
        """Test that a missing image raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            encode_image_list([os.path.join(temp_workspace_dir, 'missing.png')])


class TestUpscaleImages:
    """Tests for the upscale_images service."""

    @pytest.mark.asyncio
    async def test_success(self, webui_client, fake_webui, sd_config, two_images):
        """Test that response images are saved under the input names, in order."""
        upscaled = [
            create_test_image_base64(width=256, height=256, color='red'),
            create_test_image_base64(width=256, height=256, color='blue'),
        ]
        fake_webui.add('POST', '/sdapi/v1/extra-batch-images', {'images': upscaled})

        results = await upscale_images(UpscaleImagesParams(images=two_images), webui_client, sd_config)

        assert [os.path.basename(result.path) for result in results] == [
            'upscaled_a.png',
            'upscaled_b.png',
        ]
        with Image.open(results[1].path) as image:
            assert image.size == (256, 256)
            assert image.convert('RGB').getpixel((0, 0)) == (0, 0, 255)

        body = fake_webui.bodies('/sdapi/v1/extra-batch-images')[0]
        assert [entry['name'] for entry in body['imageList']] == ['a.png', 'b.png']

    @pytest.mark.asyncio
    async def test_output_path_creates_nested_directory(
        self, webui_client, fake_webui, sd_config, temp_workspace_dir, two_images
    ):
        """Test that a caller-supplied output path is created with its parents."""
        fake_webui.add(
            'POST', '/sdapi/v1/extra-batch-images', {'images': [create_test_image_base64()]}
        )
        output_path = os.path.join(temp_workspace_dir, 'big', 'nested')

        results = await upscale_images(
            UpscaleImagesParams(images=two_images[:1], output_path=output_path),
            webui_client,
            sd_config,
        )

        assert results[0].path == os.path.join(output_path, 'upscaled_a.png')
        assert os.path.isfile(results[0].path)

    @pytest.mark.asyncio
    async def test_fewer_results_than_inputs(self, webui_client, fake_webui, sd_config, two_images):
        """Test that only the returned images are saved when the WebUI returns fewer."""
        fake_webui.add(
            'POST', '/sdapi/v1/extra-batch-images', {'images': [create_test_image_base64()]}
        )

        results = await upscale_images(UpscaleImagesParams(images=two_images), webui_client, sd_config)

        assert [os.path.basename(result.path) for result in results] == ['upscaled_a.png']

    @pytest.mark.asyncio
    async def test_no_images(self, webui_client, fake_webui, sd_config, two_images):
        """Test that an empty image list is an error."""
        fake_webui.add('POST', '/sdapi/v1/extra-batch-images', {'images': []})

        with pytest.raises(EmptyResultError, match='No images upscaled'):
            await upscale_images(UpscaleImagesParams(images=two_images), webui_client, sd_config)

        assert os.listdir(sd_config.output_dir) == []

    @pytest.mark.asyncio
    async def test_missing_input_sends_nothing(
        self, webui_client, fake_webui, sd_config, temp_workspace_dir, two_images
    ):
        """Test that a missing input fails before any request is sent."""
        missing = os.path.join(temp_workspace_dir, 'missing.png')

        with pytest.raises(FileNotFoundError):
            await upscale_images(
                UpscaleImagesParams(images=[two_images[0], missing]), webui_client, sd_config
            )

        assert fake_webui.requests == []

    @pytest.mark.asyncio
    async def test_files_handled_off_event_loop(self, webui_client, fake_webui, sd_config, two_images):
        """Test that inputs are encoded and outputs written in worker threads."""
        fake_webui.add(
            'POST', '/sdapi/v1/extra-batch-images', {'images': [create_test_image_base64()] * 2}
        )
        loop_thread = threading.get_ident()
        worker_threads = []

        def encode(image_paths):
            worker_threads.append(threading.get_ident())
            return encode_image_list(image_paths)

        def save(image_data, output_dir, source_path):
            worker_threads.append(threading.get_ident())
            return save_upscaled_image(image_data, output_dir, source_path)

        with (
            patch.object(upscale_service, 'encode_image_list', side_effect=encode),
            patch.object(upscale_service, 'save_upscaled_image', side_effect=save),
        ):
            results = await upscale_images(
                UpscaleImagesParams(images=two_images), webui_client, sd_config
            )

        assert len(results) == 2
        assert len(worker_threads) == 3
        assert loop_thread not in worker_threads
