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
"""Process configuration sourced from the environment."""

import os
from awslabs.sd_webui_mcp_server.consts import (
    DEFAULT_OUTPUT_DIR,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RESIZE_MODE,
    DEFAULT_SD_WEBUI_URL,
    DEFAULT_UPSCALE_HEIGHT,
    DEFAULT_UPSCALE_MULTIPLIER,
    DEFAULT_UPSCALE_WIDTH,
    DEFAULT_UPSCALER_1,
    DEFAULT_UPSCALER_2,
)
from pydantic import BaseModel, ConfigDict
from typing import Mapping, Optional, Tuple


class SDWebUIConfig(BaseModel):
    """Immutable server configuration.

    Built once at startup and passed to the transport client and the services that
    need environment-sourced defaults.

    Attributes:
        webui_url: Base URL of the Stable Diffusion WebUI.
        auth_user: Basic auth user name, if any.
        auth_pass: Basic auth password, if any.
        output_dir: Directory used when a tool call does not supply one.
        request_timeout_ms: Timeout applied to every remote request, in milliseconds.
        resize_mode: Default upscale resize mode (0 multiplier, 1 dimensions).
        upscale_multiplier: Default upscale multiplier.
        upscale_width: Default upscale target width.
        upscale_height: Default upscale target height.
        upscaler_1: Default primary upscaler.
        upscaler_2: Default secondary upscaler.
    """
    model_config = ConfigDict(frozen=True)

    webui_url: str = DEFAULT_SD_WEBUI_URL
    auth_user: Optional[str] = None
    auth_pass: Optional[str] = None
    output_dir: str = DEFAULT_OUTPUT_DIR
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    resize_mode: int = DEFAULT_RESIZE_MODE
    upscale_multiplier: int = DEFAULT_UPSCALE_MULTIPLIER
    upscale_width: int = DEFAULT_UPSCALE_WIDTH
    upscale_height: int = DEFAULT_UPSCALE_HEIGHT
    upscaler_1: str = DEFAULT_UPSCALER_1
    upscaler_2: str = DEFAULT_UPSCALER_2

    @property
    def basic_auth(self) -> Optional[Tuple[str, str]]:
        """Return the basic auth pair, only when both user and password are set."""
        if self.auth_user and self.auth_pass:
            return (self.auth_user, self.auth_pass)
        return None

    @property
    def request_timeout(self) -> float:
        """Request timeout in seconds."""
        return self.request_timeout_ms / 1000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SDWebUIConfig':
        """Read the configuration from environment variables.

        Unset or empty variables fall back to their defaults.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            The frozen configuration.

        Raises:
            ValueError: If an integer setting cannot be parsed.
        """
        env = os.environ if environ is None else environ

        def _int(name: str, default: int) -> int:
            raw = env.get(name)
            if not raw:
                return default
            try:
                return int(raw.strip())
            except ValueError:
                raise ValueError(f'Environment variable {name} must be an integer, got {raw!r}')

        return cls(
            webui_url=env.get('SD_WEBUI_URL') or DEFAULT_SD_WEBUI_URL,
            auth_user=env.get('SD_AUTH_USER') or None,
            auth_pass=env.get('SD_AUTH_PASS') or None,
            output_dir=env.get('SD_OUTPUT_DIR') or DEFAULT_OUTPUT_DIR,
            request_timeout_ms=_int('REQUEST_TIMEOUT', DEFAULT_REQUEST_TIMEOUT_MS),
            resize_mode=_int('SD_RESIZE_MODE', DEFAULT_RESIZE_MODE),
            upscale_multiplier=_int('SD_UPSCALE_MULTIPLIER', DEFAULT_UPSCALE_MULTIPLIER),
            upscale_width=_int('SD_UPSCALE_WIDTH', DEFAULT_UPSCALE_WIDTH),
            upscale_height=_int('SD_UPSCALE_HEIGHT', DEFAULT_UPSCALE_HEIGHT),
            upscaler_1=env.get('SD_UPSCALER_1') or DEFAULT_UPSCALER_1,
            upscaler_2=env.get('SD_UPSCALER_2') or DEFAULT_UPSCALER_2,
        )
