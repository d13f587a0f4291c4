#!/usr/bin/env python3
"""
Invoice Annotation Surface - Main Entry Point

Usage:
    python main.py serve                          # Start the annotation web API
    python main.py render extraction.json         # Render token overlays to a PNG
    python main.py config                         # Create sample config
    python main.py info                           # Show environment information
"""

import argparse
import base64
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from invoice_annotator.core.config_manager import AnnotationConfig, ConfigurationManager

# Load environment variables early
load_dotenv()

logger = logging.getLogger(__name__)


def setup_basic_logging():
    """Setup basic logging before configuration is loaded."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def show_environment_info(config):
    """Show environment information for debugging."""
    env_info = ConfigurationManager.get_environment_info()

    print("🔧 Environment Information:")
    print(f"   Python: {env_info['python_version']}")
    print(f"   Platform: {env_info['platform']}")
    print(f"   Working Directory: {env_info['working_directory']}")

    print("\n⚙️  Configuration:")
    print(f"   Hit Padding: {config['annotation']['hit_padding']}px")
    print(f"   Nearest Threshold: {config['annotation']['nearest_threshold']}px (at 100% zoom)")
    print(f"   Settle Delay: {config['annotation']['settle_delay_ms']}ms")
    print(f"   Zoom: {config['zoom']['default']}% [{config['zoom']['min']}-{config['zoom']['max']}], "
          f"step {config['zoom']['step']}")
    print(f"   Web: {config['web']['host']}:{config['web']['port']}")
    print(f"   Render Directory: {config['output']['render_directory']}")


def run_serve_mode(config):
    """Run the annotation web API."""
    import uvicorn
    from invoice_annotator.web.annotation_web import create_app

    logger.info("🚀 Starting Invoice Annotation Surface - Web Mode")
    app = create_app(AnnotationConfig.from_config(config))

    uvicorn.run(
        app,
        host=config['web']['host'],
        port=config['web']['port'],
        log_level=config['logging']['level'].lower(),
    )


def run_render_mode(config, filename, page_index, output):
    """Render the token overlays of one page of an extraction result."""
    from invoice_annotator.core.extraction_result import parse_extraction_result
    from invoice_annotator.hitl.overlay_renderer import OverlayRenderer

    source = Path(filename)
    with open(source, 'r', encoding='utf-8') as f:
        extraction = parse_extraction_result(json.load(f))

    page = extraction.page(page_index)
    if page is None:
        raise ValueError(f"Page {page_index} not found ({len(extraction.pages)} page(s) available)")

    if output:
        output_path = Path(output)
    else:
        output_path = Path(config['output']['render_directory']) / f"{source.stem}_page{page_index + 1}.png"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    image_b64 = OverlayRenderer.render_page(page)
    output_path.write_bytes(base64.b64decode(image_b64))
    logger.info(f"💾 Overlay written to: {output_path}")
    return output_path


def main():
    """Main entry point."""
    setup_basic_logging()

    parser = argparse.ArgumentParser(
        description="Invoice Annotation Surface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve                          # Start the web API
  python main.py serve --port 9000              # Start on another port
  python main.py render result.json --page 2    # Render page 2 overlays
  python main.py config                         # Create sample config
  python main.py info                           # Show environment info
        """
    )

    parser.add_argument(
        'mode',
        choices=['serve', 'render', 'config', 'info'],
        help='Run mode'
    )

    parser.add_argument(
        'filename',
        nargs='?',
        help='Extraction result JSON (required for render mode)'
    )

    parser.add_argument(
        '--page',
        type=int,
        default=1,
        help='1-based page number for render mode'
    )

    parser.add_argument(
        '--output',
        help='Output PNG path for render mode'
    )

    parser.add_argument(
        '--port',
        type=int,
        help='Override web server port'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Override log level'
    )

    args = parser.parse_args()

    # Handle special modes first
    if args.mode == 'config':
        ConfigurationManager.create_sample_env_file()
        return

    try:
        # Load configuration
        config = ConfigurationManager.load_configuration()

        # Override config with command line arguments
        if args.port:
            config['web']['port'] = args.port

        if args.log_level:
            config['logging']['level'] = args.log_level

        ConfigurationManager.setup_logging(config)

        if args.mode == 'info':
            show_environment_info(config)
            return

        if args.mode == 'render' and not args.filename:
            logger.error("❌ Filename is required for render mode")
            parser.print_help()
            sys.exit(1)

        if args.mode == 'serve':
            run_serve_mode(config)
        elif args.mode == 'render':
            run_render_mode(config, args.filename, args.page - 1, args.output)

    except KeyboardInterrupt:
        logger.info("🛑 Application stopped by user")
    except Exception as e:
        logger.error(f"❌ Application failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
