"""
Blood Bank Records Manager
Flask REST service for donors, recipients, hospitals, blood types and
transactions, with blood inventory derived from the transaction history.
"""
import logging

import click
from flask import Flask, current_app, jsonify
from flask.cli import with_appcontext
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from bloodbank.api import api_bp
from bloodbank.config import Config
from bloodbank.sample_data import seed_data_command
from bloodbank.store import DynamoStore, StoreError, make_store
from bloodbank.views import views_bp


def create_app(config=None, store=None):
    """Flask application factory"""
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app.logger.setLevel(app.config['LOG_LEVEL'])

    CORS(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}})

    if store is None:
        store = make_store(app.config)
    app.extensions['bloodbank_store'] = store
    app.logger.info('Using %s', type(store).__name__)

    app.register_blueprint(api_bp)
    app.register_blueprint(views_bp)
    register_error_handlers(app)

    app.cli.add_command(seed_data_command)
    app.cli.add_command(create_tables_command)
    return app


# ============== ERROR HANDLERS ==============

def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'message': 'Resource not found.'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'message': 'Method not allowed.'}), 405

    @app.errorhandler(StoreError)
    def store_error(e):
        app.logger.exception('Store failure')
        return jsonify({'message': f'Error reading records: {e}'}), 500

    @app.errorhandler(Exception)
    def server_error(e):
        if isinstance(e, HTTPException):
            return jsonify({'message': e.description}), e.code
        app.logger.exception('Unhandled error')
        return jsonify({'message': 'Internal server error.'}), 500


@click.command('create-tables')
@with_appcontext
def create_tables_command():
    """Create the DynamoDB tables if they do not exist."""
    store = current_app.extensions['bloodbank_store']
    if not isinstance(store, DynamoStore):
        click.echo('Store backend is not dynamodb, nothing to create')
        return
    store.create_tables()
    click.echo('DynamoDB tables ready')
