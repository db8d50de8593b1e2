"""REST API endpoints for proposals, tasks and branch cleanup."""

from flask import Blueprint, jsonify, request

from shipit.core.services import Services
from shipit.server.auth import require_api_key
from shipit.server.task_processor import TaskProcessor, confirm_proposal


def create_api_blueprint(services: Services, processor: TaskProcessor) -> Blueprint:
    """
    Create API blueprint with task endpoints.

    Args:
        services: Core services
        processor: Task processor for confirmed tasks

    Returns:
        Flask Blueprint
    """
    api = Blueprint("api", __name__)

    @api.route("/proposals", methods=["POST"])
    @require_api_key
    def create_proposal():
        """Register an instruction awaiting repository confirmation."""
        data = request.get_json(silent=True)

        if not data:
            return jsonify({
                "error": "Bad Request",
                "message": "Request body must be JSON"
            }), 400

        instruction = (data.get("instruction") or "").strip()
        if not instruction:
            return jsonify({
                "error": "Bad Request",
                "message": "instruction is required"
            }), 400

        proposal_id = services.proposals.create(
            instruction,
            data.get("user_id") or "api",
            data.get("channel") or "",
        )

        return jsonify({
            "proposal_id": proposal_id,
            "default_target": services.default_target.to_dict(),
            "expires_in": services.proposals.ttl,
        }), 201

    @api.route("/proposals/<proposal_id>/confirm", methods=["POST"])
    @require_api_key
    def confirm(proposal_id: str):
        """Confirm a proposal, optionally overriding the target repository."""
        data = request.get_json(silent=True) or {}

        try:
            task = confirm_proposal(
                services,
                processor,
                proposal_id,
                owner=data.get("owner"),
                repo=data.get("repo"),
                base_branch=data.get("base_branch"),
            )
        except ValueError as e:
            return jsonify({
                "error": "Bad Request",
                "message": str(e)
            }), 400

        if task is None:
            return jsonify({
                "error": "Gone",
                "message": "Proposal expired or was already confirmed. Please try again."
            }), 410

        return jsonify(task.to_dict()), 202

    @api.route("/tasks", methods=["GET"])
    @require_api_key
    def list_tasks():
        """List tasks with optional status filter."""
        status_filter = request.args.get("status")
        try:
            limit = int(request.args.get("limit", 100))
        except ValueError:
            limit = 100

        tasks = services.task_store.list_tasks(status_filter=status_filter, limit=limit)
        return jsonify({
            "tasks": [task.to_dict() for task in tasks],
            "total": len(tasks),
        }), 200

    @api.route("/tasks/<task_id>", methods=["GET"])
    @require_api_key
    def get_task(task_id: str):
        """Get task status."""
        task = services.task_store.get_task(task_id)

        if not task:
            return jsonify({
                "error": "Not Found",
                "message": f"Task {task_id} not found"
            }), 404

        return jsonify(task.to_dict()), 200

    @api.route("/branches/cleanup", methods=["POST"])
    @require_api_key
    def cleanup_branches():
        """Delete remote branches that are fully merged into the base branch."""
        result = services.reconciler().reconcile()
        return jsonify(result.to_dict()), 200

    return api
