#!/usr/bin/env python3
#USE VENV: source venv/bin/activate
"""
Run script for the Vehicle Workflow Orchestrator
Builds the database and reports how many vehicles sit at each location
"""

from vehicle_workflow import create_app, get_orchestrator
from vehicle_workflow.build import build_database
from vehicle_workflow.utils.logger import get_logger
import sys
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

import argparse

logger = get_logger("vehicle_workflow.run")


def parse_arguments():
    """Parse command line arguments for the build"""
    parser = argparse.ArgumentParser(description='Vehicle Workflow Orchestrator')
    parser.add_argument('--build-only', action='store_true',
                       help='Build database tables only, do not report workflow status')
    parser.add_argument('--seed-demo-data', action='store_true', default=False,
                       help='Insert demo vehicles at several locations (skipped for VINs already present)')

    return parser.parse_args()


if __name__ == '__main__':
    args = parse_arguments()

    app = create_app()
    logger.debug("Starting Vehicle Workflow Orchestrator...")

    build_database(app, seed_demo_data=args.seed_demo_data)

    if args.build_only:
        logger.debug("Build completed. Exiting without reporting workflow status.")
        sys.exit(0)

    with app.app_context():
        orchestrator = get_orchestrator(app)
        for location, count in orchestrator.get_workflow_status().items():
            logger.info(f"{orchestrator.get_location_display_name(location)}: {count} vehicle(s)")
        orchestrator.shutdown()
