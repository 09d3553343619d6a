"""
Swagger/OpenAPI configuration for the Car Wash Backend API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Car Wash Backend API",
        "description": "Staff accounts, vehicle check-ins, washer payouts, tools and customer loyalty for a multi-location car wash",
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Login, current user and password changes"},
        {"name": "Accounts", "description": "Admin and car washer provisioning"},
        {"name": "Locations", "description": "Service locations grouped by LGA"},
        {"name": "Services", "description": "Service catalog and commission splits"},
        {"name": "Customers", "description": "Customers and their vehicles"},
        {"name": "Check-ins", "description": "Vehicle check-in lifecycle"},
        {"name": "Washer Tools", "description": "Tools and materials held by washers"},
        {"name": "Payment Requests", "description": "Washer payouts and deductions"},
        {"name": "Milestones", "description": "Customer loyalty milestones and rewards"},
        {"name": "Bonuses", "description": "Bonuses and the expenses they create"},
        {"name": "Dashboard", "description": "Rollups, sales and Excel reports"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "success": {"type": "boolean", "example": False},
                "error": {"type": "string"},
            },
        },
        "User": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "email": {"type": "string", "format": "email"},
                "phone": {"type": "string"},
                "role": {
                    "type": "string",
                    "enum": ["super_admin", "admin", "car_washer"],
                },
                "isActive": {"type": "boolean"},
            },
        },
        "CheckInLine": {
            "type": "object",
            "properties": {
                "serviceId": {"type": "integer"},
                "serviceName": {"type": "string"},
                "workerId": {"type": "integer"},
                "price": {"type": "number", "format": "float"},
                "duration": {"type": "integer"},
            },
        },
        "CheckIn": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "licensePlate": {"type": "string"},
                "status": {
                    "type": "string",
                    "enum": ["pending", "in_progress", "completed", "paid", "cancelled"],
                },
                "washType": {"type": "string", "enum": ["instant", "delayed"]},
                "paymentStatus": {"type": "string", "enum": ["pending", "paid"]},
                "totalPrice": {"type": "number", "format": "float"},
                "services": {"type": "array", "items": {"$ref": "#/definitions/CheckInLine"}},
            },
        },
    },
}
