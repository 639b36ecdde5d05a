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
# Constants
SERVER_NAME = 'image-gen'
SERVER_VERSION = '0.1.0'

# Stable Diffusion WebUI API endpoints
TXT2IMG_ENDPOINT = '/sdapi/v1/txt2img'
IMG2IMG_ENDPOINT = '/sdapi/v1/img2img'
PNG_INFO_ENDPOINT = '/sdapi/v1/png-info'
SD_MODELS_ENDPOINT = '/sdapi/v1/sd-models'
OPTIONS_ENDPOINT = '/sdapi/v1/options'
UPSCALERS_ENDPOINT = '/sdapi/v1/upscalers'
EXTRA_BATCH_IMAGES_ENDPOINT = '/sdapi/v1/extra-batch-images'

# Environment defaults
DEFAULT_SD_WEBUI_URL = 'http://127.0.0.1:7860'
DEFAULT_OUTPUT_DIR = './output'
DEFAULT_REQUEST_TIMEOUT_MS = 300000
DEFAULT_RESIZE_MODE = 0
DEFAULT_UPSCALE_MULTIPLIER = 4
DEFAULT_UPSCALE_WIDTH = 512
DEFAULT_UPSCALE_HEIGHT = 512
DEFAULT_UPSCALER_1 = 'R-ESRGAN 4x+'
DEFAULT_UPSCALER_2 = 'None'
DEFAULT_LOG_LEVEL = 'WARNING'

# txt2img defaults
DEFAULT_NEGATIVE_PROMPT = ''
DEFAULT_STEPS = 20
DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 1024
DEFAULT_CFG_SCALE = 7
DEFAULT_SAMPLER = 'Euler'
DEFAULT_SCHEDULER = 'Simple'
DEFAULT_SEED = -1
DEFAULT_BATCH_SIZE = 1
DEFAULT_DISTILLED_CFG_SCALE = 3.5

# Validation bounds
MIN_STEPS = 1
MAX_STEPS = 150
MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 4
MIN_HR_SCALE = 1
MAX_HR_SCALE = 4
MIN_UPSCALE_VALUE = 1

# Hires fix defaults
DEFAULT_HR_SCALE = 2
DEFAULT_DENOISING_STRENGTH = 0.7
HIRES_DISPATCH_TIMEOUT = 1.0  # Seconds; the img2img call is never awaited to completion

# Output filenames
GENERATED_FILENAME_PREFIX = 'sd'
UPSCALED_FILENAME_PREFIX = 'upscaled'
PNG_DATA_URI_PREFIX = 'data:image/png;base64,'

# Fixed extras (upscale) payload fields
UPSCALE_FIXED_FIELDS = {
    'show_extras_results': True,
    'gfpgan_visibility': 0,
    'codeformer_visibility': 0,
    'codeformer_weight': 0,
    'upscaling_crop': True,
    'extras_upscaler_2_visibility': 0,
    'upscale_first': False,
}

# Process lifecycle
UNCAUGHT_EXCEPTION_EXIT_DELAY = 0.5  # Seconds


SERVER_INSTRUCTIONS = """
# Stable Diffusion WebUI Image Generation

This MCP server proxies image generation and upscaling requests to a Stable Diffusion
WebUI instance (AUTOMATIC1111 or Forge) through its HTTP API.

## Available Tools

- **generate_image**: Generate images from a text prompt (txt2img). Generation parameters are
  embedded in each saved PNG.
- **get_sd_models**: List the checkpoints installed on the WebUI.
- **set_sd_model**: Switch the active checkpoint.
- **get_sd_upscalers**: List the upscaler models installed on the WebUI.
- **upscale_images**: Upscale one or more local images with the extras batch endpoint.
- **hires_fix_image**: Send an existing image through img2img at a higher resolution. The request
  is not awaited; the result is written to the WebUI's own output directory.

## Prompt Best Practices

- Describe the subject first, then the environment, lighting, framing and medium.
- Put things to exclude in `negative_prompt` rather than using negation in the prompt.
- Keep a fixed `seed` while refining a prompt, then vary the seed for variations.
- Flux style checkpoints respond to `distilled_cfg_scale`; classic checkpoints use `cfg_scale`.
"""
