"""
autowb command line interface

Commands for correcting and analysing the white balance of a single image.
"""

import sys
import json
import click
import logging
from pathlib import Path
from typing import Optional, Tuple

from autowb.config import (
    load_config, get_config_value, parse_white_point, build_correction_settings, build_pipeline_options
)
from autowb.exceptions import AutoWhiteBalanceError, InputValidationError
from autowb.processing.pipeline import AutoWhiteBalancePipeline
from autowb.io.raster import decode
from autowb.utils.logging import setup_console_logging

logger = logging.getLogger(__name__)

USAGE_EXAMPLES = """\
Usage: autowb correct --whitepoint <x,y> --gamma <value> --output <filename> <image_path>
       autowb correct -w <x,y> -g <value> -o <filename> <image_path>
       autowb correct <image_path>  (white point 0.3127,0.3290, gamma 2.2, <stem>_awb<ext>)"""


def _single_image(ctx, image_paths: Tuple[str, ...]) -> Path:
    """Exactly one image path, or a usage message / validation error"""
    if not image_paths:
        click.echo(USAGE_EXAMPLES)
        ctx.exit(0)
    if len(image_paths) > 1:
        raise InputValidationError(
            "Multiple image paths provided. Please specify only one image path."
        )
    return Path(image_paths[0])


def _build_pipeline(ctx, white_point: Optional[str], gamma: Optional[float],
                    workers: Optional[int]) -> AutoWhiteBalancePipeline:
    config = ctx.obj['config']
    settings = build_correction_settings(
        config,
        white_point=parse_white_point(white_point) if white_point is not None else None,
        gamma=gamma,
    )
    options = build_pipeline_options(config)
    if workers:
        options['max_workers'] = workers
    return AutoWhiteBalancePipeline(settings, **options)


def _fail(ctx, error: Exception):
    click.echo(f"Error: {error}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, config: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    autowb - Automatic white balance by chromaticity offset

    Estimates the scene illuminant from the average xy chromaticity of an
    image and shifts every pixel toward a target white point while keeping
    its luminance.
    """
    if ctx.obj is None:
        ctx.obj = {}

    ctx.obj['config'] = load_config(config)

    level = get_config_value(ctx.obj['config'], 'logging.level', 'INFO')
    if verbose:
        level = 'DEBUG'
    elif quiet:
        level = 'ERROR'
    setup_console_logging(
        level,
        color=get_config_value(ctx.obj['config'], 'logging.color', True),
        fmt=get_config_value(ctx.obj['config'], 'logging.format',
                             '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
    )

    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


@main.command()
@click.argument('image_paths', nargs=-1, type=click.Path())
@click.option('--whitepoint', '-w', 'white_point', metavar='X,Y',
              help='Chromaticity coordinates of the white point as x,y')
@click.option('--gamma', '-g', type=float, help='Gamma value (default 2.2)')
@click.option('--output', '-o', 'output_name', help='Output filename')
@click.option('--workers', type=click.IntRange(min=1), help='Worker threads')
@click.option('--dry-run', is_flag=True, help='Measure and correct without writing the output file')
@click.pass_context
def correct(ctx, image_paths: Tuple[str, ...], white_point: Optional[str],
            gamma: Optional[float], output_name: Optional[str], workers: Optional[int],
            dry_run: bool):
    """
    Correct the white balance of an image.

    The result is written next to the input as <stem>_awb with the
    extension of the input's format, unless --output is given.

    IMAGE_PATH: Path to the image file
    """
    quiet = ctx.obj.get('quiet', False)

    try:
        image_path = _single_image(ctx, image_paths)
        pipeline = _build_pipeline(ctx, white_point, gamma, workers)
        result = pipeline.process_file(image_path, output_name, dry_run=dry_run)
    except AutoWhiteBalanceError as e:
        _fail(ctx, e)
        return

    if not quiet:
        offset_x, offset_y = result.analysis.offset
        click.echo(f"Offset applied: ({offset_x:+.5f}, {offset_y:+.5f})")
        if result.written:
            click.echo(f"Image saved successfully in the same format as the input: {result.output_path}")
        else:
            click.echo(f"Dry run, nothing written. Output would be: {result.output_path}")


@main.command()
@click.argument('image_paths', nargs=-1, type=click.Path())
@click.option('--whitepoint', '-w', 'white_point', metavar='X,Y',
              help='Chromaticity coordinates of the white point as x,y')
@click.option('--gamma', '-g', type=float, help='Gamma value (default 2.2)')
@click.option('--output-format', type=click.Choice(['text', 'json']), default='text',
              help='Output format for results')
@click.pass_context
def analyze(ctx, image_paths: Tuple[str, ...], white_point: Optional[str],
            gamma: Optional[float], output_format: str):
    """
    Report the measured chromaticity offset without writing anything.

    IMAGE_PATH: Path to the image file
    """
    try:
        image_path = _single_image(ctx, image_paths)
        pipeline = _build_pipeline(ctx, white_point, gamma, None)
        analysis = pipeline.analyze(decode(image_path).buffer)
    except AutoWhiteBalanceError as e:
        _fail(ctx, e)
        return

    if output_format == 'json':
        click.echo(json.dumps(analysis.to_dict(), indent=2))
        return

    offset_x, offset_y = analysis.offset
    click.echo(f"Image:                {image_path}")
    click.echo(f"Average chromaticity: ({analysis.average_x:.5f}, {analysis.average_y:.5f})")
    click.echo(f"White point:          ({analysis.white_point[0]:.5f}, {analysis.white_point[1]:.5f})")
    click.echo(f"Offset:               ({offset_x:+.5f}, {offset_y:+.5f})")
    click.echo(f"Pixels used:          {analysis.contributing_pixels}/{analysis.total_pixels}")


if __name__ == '__main__':
    main()
