"""Server app for Slack commands, the REST API and the task workers."""

import sys

import click

from shipit.core.config import ConfigError, load_config
from shipit.core.proposals import ProposalSweeper
from shipit.core.services import build_services


@click.command(name="serve")
@click.option(
    "--port",
    type=int,
    default=3000,
    help="Port to run the HTTP server on (default: 3000)",
)
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Number of task processor worker threads (default: SHIPIT_MAX_WORKERS or 1)",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug mode (detailed errors)",
)
def serve(port: int, workers: int, debug: bool) -> None:
    """
    Start the ShipIt server.

    This command starts a Flask server that:
    - Receives Slack slash commands (/shipit, /shipit-cleanup) at /slack/commands
    - Receives Slack button clicks and modal submissions at /slack/interactions
    - Receives @ShipIt mentions through the Events API at /slack/events
    - Provides HTTP API endpoints for proposals, tasks and branch cleanup at /api

    Example:
        shipit serve --port 3000 --workers 2

    Required environment variables (or .env file):
    - ANTHROPIC_API_KEY
    - SLACK_BOT_TOKEN, SLACK_SIGNING_SECRET
    - GITHUB_TOKEN, GITHUB_OWNER, GITHUB_REPO
    """
    try:
        config = load_config(require_chat=True)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Run 'shipit check-config' to see which settings are missing.", err=True)
        sys.exit(1)

    from shipit.server.config import ServerConfig
    from shipit.server.flask_app import create_app, start_server
    from shipit.server.slack import SlackClient, SlackNotifier
    from shipit.server.task_processor import TaskProcessor

    server_config = ServerConfig()
    services = build_services(config)

    slack_client = SlackClient(config.slack_bot_token, session=services.session)
    services.notifications.subscribe(SlackNotifier(slack_client))

    processor = TaskProcessor(
        services,
        num_workers=workers or server_config.max_workers,
        max_queue_size=server_config.max_queue_size,
    )
    app = create_app(services, processor, server_config=server_config, slack_client=slack_client)

    print("Starting ShipIt AI Development System...")
    print(f"  Default repository: {services.default_target.full_name} ({services.default_target.base_branch})")
    print(f"  Workspace: {config.working_directory}")

    if not server_config.has_api_keys():
        print("Warning: SHIPIT_API_KEYS is not set; /api endpoints will reject every request")

    processor.start()
    try:
        with ProposalSweeper(services.proposals, interval=config.sweep_interval):
            print(f"ShipIt is ready on port {port}! Waiting for developer instructions...")
            start_server(app, port=port, debug=debug)
    except KeyboardInterrupt:
        print("\nShutting down ShipIt...")
    finally:
        processor.stop()
        print("ShipIt stopped")
