from flask import Blueprint, jsonify, request

from app.errors import CarWashError
from app.services import tools
from app.utils.auth_utils import require_actor
from app.utils.http_utils import error_response, get_json_body, to_bool, unexpected_error
from app.utils.serializers import tool_to_dict

washer_tools_bp = Blueprint("admin_washer_tools", __name__, url_prefix="/api/admin/washer-tools")


@washer_tools_bp.route("", methods=["GET"])
@require_actor
def list_tools(actor):
    """
    List tool and material assignments
    ---
    tags:
      - Washer Tools
    security:
      - Bearer: []
    parameters:
      - name: washerId
        in: query
        type: integer
      - name: isReturned
        in: query
        type: boolean
      - name: toolType
        in: query
        type: string
        enum: [tool, equipment, material, supply]
    responses:
      200:
        description: Assignments, newest first
    """
    try:
        rows = tools.list_tools(
            actor,
            washer_id=request.args.get("washerId"),
            returned=to_bool(request.args.get("isReturned", request.args.get("returned"))),
            tool_type=request.args.get("toolType"),
        )
        return jsonify({"success": True, "tools": [tool_to_dict(t) for t in rows]}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "list washer tools")


@washer_tools_bp.route("", methods=["POST"])
@require_actor
def assign_tool(actor):
    """
    Hand a tool or material to a washer
    ---
    tags:
      - Washer Tools
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [washerId, toolName]
          properties:
            washerId:
              type: integer
            toolName:
              type: string
            toolType:
              type: string
              enum: [tool, equipment, material, supply]
            quantity:
              type: integer
              default: 1
            amount:
              type: number
              description: Unit value, deducted from payouts while unreturned
            notes:
              type: string
    responses:
      201:
        description: Assignment recorded
      404:
        description: Washer not found
    """
    try:
        tool = tools.assign_tool(actor, get_json_body())
        return jsonify({"success": True, "tool": tool_to_dict(tool)}), 201
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, "assign tool")


@washer_tools_bp.route("/<int:tool_id>/return", methods=["PATCH"])
@require_actor
def return_tool(actor, tool_id):
    try:
        tool = tools.return_tool(actor, tool_id, get_json_body().get("notes"))
        return jsonify({"success": True, "tool": tool_to_dict(tool)}), 200
    except CarWashError as e:
        return error_response(e)
    except Exception as e:
        return unexpected_error(e, f"return tool {tool_id}")
