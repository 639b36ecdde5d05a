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
"""Test fixtures for the sd-webui-mcp-server tests."""

import base64
import httpx
import inspect
import json
import os
import pytest
import pytest_asyncio
from awslabs.sd_webui_mcp_server.config import SDWebUIConfig
from awslabs.sd_webui_mcp_server.services.webui_client import SDWebUIClient
from io import BytesIO
from PIL import Image
from typing import Any, Callable, Dict, List, Optional, Tuple


def create_test_image_bytes(width=64, height=64, color='red', format='PNG'):
    """Create a valid test image and return its encoded bytes."""
    img = Image.new('RGB', (width, height), color=color)
    buffer = BytesIO()
    img.save(buffer, format=format)
    return buffer.getvalue()


def create_test_image_base64(width=64, height=64, color='red', format='PNG'):
    """Create a valid test image and return as base64 string."""
    return base64.b64encode(create_test_image_bytes(width, height, color, format)).decode('utf-8')


class FakeWebUI:
    """In-memory stand-in for the Stable Diffusion WebUI API.

    Routes map (method, path) to either a (status_code, json_body) pair or a callable
    taking the httpx.Request and returning an httpx.Response (sync or async).
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        status_code: int = 200,
        handler: Optional[Callable[[httpx.Request], Any]] = None,
    ) -> None:
        self.routes[(method, path)] = handler if handler is not None else (status_code, json_body)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={'detail': 'Not Found'})
        if callable(route):
            response = route(request)
            if inspect.isawaitable(response):
                response = await response
            return response
        status_code, body = route
        return httpx.Response(status_code, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def bodies(self, path: str) -> List[Any]:
        """JSON bodies of the requests received on ``path``, in order."""
        return [
            json.loads(request.content) if request.content else None
            for request in self.requests
            if request.url.path == path
        ]


@pytest.fixture
def temp_workspace_dir(tmp_path):
    """Create a temporary workspace directory for testing."""
    return str(tmp_path)


@pytest.fixture
def sd_config(temp_workspace_dir):
    """Configuration writing to an output directory inside the temporary workspace."""
    return SDWebUIConfig(output_dir=os.path.join(temp_workspace_dir, 'output'))


@pytest.fixture
def fake_webui():
    """A fresh fake WebUI with no routes."""
    return FakeWebUI()


@pytest_asyncio.fixture
async def webui_client(sd_config, fake_webui):
    """A WebUI client wired to the fake WebUI."""
    client = SDWebUIClient(sd_config, transport=fake_webui.transport)
    yield client
    await client.aclose()


@pytest.fixture
def sample_image_base64():
    """A small valid PNG as base64."""
    return create_test_image_base64()


@pytest.fixture
def sample_image_file(temp_workspace_dir):
    """A 64x48 PNG written to the workspace; returns its path."""
    path = os.path.join(temp_workspace_dir, 'source.png')
    with open(path, 'wb') as f:
        f.write(create_test_image_bytes(width=64, height=48))
    return path


@pytest.fixture
def sample_info():
    """A parameters string as produced by the WebUI."""
    return (
        'a lighthouse on a cliff at dusk, cinematic\n'
        'Negative prompt: blurry, low quality\n'
        'Steps: 20, Sampler: Euler, Schedule type: Simple, CFG scale: 7, Seed: 1234, '
        'Size: 1024x1024'
    )
