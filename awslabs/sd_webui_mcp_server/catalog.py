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
"""Static descriptors of the tools exposed by the server."""

from mcp.types import Tool
from typing import List


GENERATE_IMAGE_TOOL = Tool(
    name='generate_image',
    description='Generate an image using Stable Diffusion',
    inputSchema={
        'type': 'object',
        'properties': {
            'prompt': {'type': 'string', 'description': 'The prompt describing the desired image'},
            'negative_prompt': {'type': 'string', 'description': 'Things to exclude from the image'},
            'steps': {
                'type': 'number',
                'description': 'Number of sampling steps (default: 20)',
                'minimum': 1,
                'maximum': 150,
            },
            'width': {
                'type': 'number',
                'description': 'Image width (default: 1024)',
                'minimum': 512,
                'maximum': 2048,
            },
            'height': {
                'type': 'number',
                'description': 'Image height (default: 1024)',
                'minimum': 512,
                'maximum': 2048,
            },
            'cfg_scale': {
                'type': 'number',
                'description': 'CFG scale (default: 7)',
                'minimum': 1,
                'maximum': 30,
            },
            'sampler_name': {
                'type': 'string',
                'description': 'Sampling algorithm (default: Euler)',
                'default': 'Euler',
            },
            'scheduler_name': {
                'type': 'string',
                'description': 'Scheduler algorithm (default: Simple)',
                'default': 'Simple',
            },
            'seed': {'type': 'number', 'description': 'Random seed (-1 for random)', 'minimum': -1},
            'batch_size': {
                'type': 'number',
                'description': 'Number of images to generate (default: 1)',
                'minimum': 1,
                'maximum': 4,
            },
            'restore_faces': {'type': 'boolean', 'description': 'Enable face restoration'},
            'tiling': {'type': 'boolean', 'description': 'Generate tileable images'},
            'distilled_cfg_scale': {
                'type': 'number',
                'description': 'Distilled CFG scale (default: 3.5)',
                'minimum': 1,
                'maximum': 30,
            },
            'output_path': {
                'type': 'string',
                'description': 'Custom output path for the generated image',
            },
        },
        'required': ['prompt'],
    },
)

GET_SD_MODELS_TOOL = Tool(
    name='get_sd_models',
    description='Get list of available Stable Diffusion models',
    inputSchema={'type': 'object', 'properties': {}, 'required': []},
)

SET_SD_MODEL_TOOL = Tool(
    name='set_sd_model',
    description='Set the active Stable Diffusion model',
    inputSchema={
        'type': 'object',
        'properties': {
            'model_name': {'type': 'string', 'description': 'Name of the model to set as active'},
        },
        'required': ['model_name'],
    },
)

GET_SD_UPSCALERS_TOOL = Tool(
    name='get_sd_upscalers',
    description='Get list of available upscaler models',
    inputSchema={'type': 'object', 'properties': {}, 'required': []},
)

UPSCALE_IMAGES_TOOL = Tool(
    name='upscale_images',
    description='Upscale one or more images using Stable Diffusion',
    inputSchema={
        'type': 'object',
        'properties': {
            'images': {
                'type': 'array',
                'items': {'type': 'string'},
                'description': 'Array of image file paths to upscale',
            },
            'resize_mode': {
                'type': 'string',
                'enum': ['0', '1'],
                'description': '0 for multiplier mode (default), 1 for dimension mode',
            },
            'upscaling_resize': {
                'type': 'number',
                'description': 'Upscale multiplier (default: 4) - used when resize_mode is 0',
            },
            'upscaling_resize_w': {
                'type': 'number',
                'description': 'Target width in pixels (default: 512) - used when resize_mode is 1',
            },
            'upscaling_resize_h': {
                'type': 'number',
                'description': 'Target height in pixels (default: 512) - used when resize_mode is 1',
            },
            'upscaler_1': {
                'type': 'string',
                'description': 'Primary upscaler model (default: R-ESRGAN 4x+)',
            },
            'upscaler_2': {
                'type': 'string',
                'description': 'Secondary upscaler model (default: None)',
            },
            'output_path': {
                'type': 'string',
                'description': 'Custom output directory for upscaled images',
            },
        },
        'required': ['images'],
    },
)

HIRES_FIX_IMAGE_TOOL = Tool(
    name='hires_fix_image',
    description=(
        'Apply hires.fix upscaling to an existing image using img2img. This sends the request '
        'to Stable Diffusion but does not wait for completion - the image will be saved to the '
        'SD output directory when finished.'
    ),
    inputSchema={
        'type': 'object',
        'properties': {
            'image_path': {'type': 'string', 'description': 'Path to the image file to upscale'},
            'hr_scale': {
                'type': 'number',
                'description': 'Upscale factor (default: 2)',
                'minimum': 1,
                'maximum': 4,
            },
            'hr_upscaler': {'type': 'string', 'description': 'Upscaler to use (default: Latent)'},
            'denoising_strength': {
                'type': 'number',
                'description': 'How much to alter the image (default: 0.7, lower = closer to original)',
                'minimum': 0,
                'maximum': 1,
            },
            'steps': {
                'type': 'number',
                'description': 'Number of sampling steps (default: 20)',
                'minimum': 1,
                'maximum': 150,
            },
        },
        'required': ['image_path'],
    },
)


def get_tools() -> List[Tool]:
    """Return the tool descriptors in the order they are listed to clients."""
    return [
        GENERATE_IMAGE_TOOL,
        GET_SD_MODELS_TOOL,
        SET_SD_MODEL_TOOL,
        GET_SD_UPSCALERS_TOOL,
        UPSCALE_IMAGES_TOOL,
        HIRES_FIX_IMAGE_TOOL,
    ]
