#!/usr/bin/env python3
"""
Database build for the vehicle workflow
Creates tables and optionally inserts demo vehicles
"""

from vehicle_workflow import create_app, db
from pathlib import Path
import json
from vehicle_workflow.utils.logger import get_logger

logger = get_logger("vehicle_workflow.build")

DEMO_DATA_FILE = Path(__file__).parent / 'data' / 'core' / 'build_data_demo.json'


def build_models():
    """Create all workflow tables that do not exist yet"""
    # Models must be imported so they are registered on db.metadata
    from vehicle_workflow.data.core import Vehicle, LocationHistoryEntry, WorkflowEvent

    db.create_all()
    logger.info("Workflow tables created")


def insert_demo_data(data_file=DEMO_DATA_FILE):
    """
    Insert demo vehicles at several locations

    Vehicles that already exist (by VIN) are skipped.

    Args:
        data_file (Path): JSON file with a "Vehicles" list

    Returns:
        int: Number of vehicles inserted

    Raises:
        FileNotFoundError: If the demo data file is missing
    """
    from vehicle_workflow.buisness.core.vehicle_store import VehicleStore

    if not Path(data_file).exists():
        error_msg = f"Demo data file not found: {data_file}"
        logger.error(error_msg)
        raise FileNotFoundError(error_msg)

    with open(data_file, 'r') as f:
        demo_data = json.load(f)

    store = VehicleStore()
    inserted = 0
    try:
        for vehicle_data in demo_data.get('Vehicles', []):
            if store.get_by_vin(vehicle_data['vin']) is not None:
                logger.debug(f"Demo vehicle {vehicle_data['vin']} already present, skipping")
                continue

            store.register(
                vehicle_data['vin'],
                vehicle_data['current_location'],
                vehicle_data['current_step'],
                model=vehicle_data.get('model'),
                attributes=vehicle_data.get('attributes'),
                commit=False,
            )
            inserted += 1

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Demo data insertion failed: {e}")
        raise

    logger.info(f"Inserted {inserted} demo vehicles")
    return inserted


def build_database(app=None, seed_demo_data=False):
    """
    Main build entry point

    Args:
        app (Flask, optional): Application to build for; created when omitted
        seed_demo_data (bool): Whether to insert demo vehicles
    """
    app = app or create_app()

    with app.app_context():
        logger.info(f"Starting database build - demo data: {seed_demo_data}")
        build_models()

        if seed_demo_data:
            insert_demo_data()
