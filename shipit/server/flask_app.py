"""Flask application setup and configuration."""

from typing import Optional

from flask import Flask, jsonify

from shipit.core.services import Services
from shipit.server.config import ServerConfig
from shipit.server.task_processor import TaskProcessor


def create_app(
    services: Services,
    processor: TaskProcessor,
    server_config: Optional[ServerConfig] = None,
    slack_client=None,
) -> Flask:
    """
    Create and configure Flask application.

    Args:
        services: Core services
        processor: Task processor for confirmed tasks
        server_config: Server settings (loaded from environment if not provided)
        slack_client: Optional Slack client; Slack routes are only mounted when given

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    app.config["SERVER_CONFIG"] = server_config or ServerConfig()

    from shipit.server.api import create_api_blueprint

    app.register_blueprint(create_api_blueprint(services, processor), url_prefix="/api")
    print("API endpoints registered at /api")

    if slack_client is not None:
        from shipit.server.slack import create_slack_blueprint

        app.register_blueprint(create_slack_blueprint(services, processor, slack_client), url_prefix="/slack")
        print("Slack endpoints registered at /slack")

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "task_queue_size": processor.size(),
            "pending_proposals": services.proposals.size(),
            "tasks": services.task_store.size(),
            "workspace_locked": services.workspace_lock.locked,
            "workspace_waiting": services.workspace_lock.waiting,
        }), 200

    return app


def start_server(app: Flask, port: int = 3000, debug: bool = False):
    """
    Start the Flask server.

    Args:
        app: Flask application instance
        port: Port to listen on
        debug: Enable debug mode (detailed error pages)
    """
    app.run(
        host="0.0.0.0",
        port=port,
        debug=debug,
        use_reloader=False,
    )
