"""JSON shapes returned by the blueprints."""

from app.models import (
    AdminProfile,
    Bonus,
    CarWasherProfile,
    CheckIn,
    CheckInMaterial,
    Customer,
    CustomerMilestoneAchievement,
    Expense,
    Location,
    Milestone,
    PaymentRequest,
    SalesTransaction,
    Service,
    User,
    Vehicle,
    WasherTool,
)
from app.utils.http_utils import iso, money


def location_to_dict(location: Location):
    return {
        "id": location.id,
        "address": location.address,
        "lga": location.lga,
        "is_active": bool(location.is_active),
        "created_at": iso(location.created_at),
        "updated_at": iso(location.updated_at),
    }


def _next_of_kin(user: User):
    return [
        {
            "id": kin.id,
            "name": kin.name,
            "phone": kin.phone,
            "address": kin.address,
            "relationship": kin.relationship_type,
        }
        for kin in user.next_of_kin
    ]


def _admin_profile(profile: AdminProfile):
    return {
        "locationId": profile.location_id,
        "location": location_to_dict(profile.location) if profile.location else None,
        "address": profile.address,
        "cvUrl": profile.cv_url,
        "pictureUrl": profile.picture_url,
    }


def _washer_profile(profile: CarWasherProfile):
    return {
        "assignedAdminId": profile.assigned_admin_id,
        "assignedLocationId": profile.assigned_location_id,
        "location": location_to_dict(profile.location) if profile.location else None,
        "hourlyRate": money(profile.hourly_rate) if profile.hourly_rate is not None else None,
        "totalEarnings": money(profile.total_earnings),
        "isAvailable": bool(profile.is_available),
        "pictureUrl": profile.picture_url,
        "bankInformation": {
            "bankName": profile.bank_name,
            "accountNumber": profile.account_number,
            "accountName": profile.account_name,
        },
    }


def user_to_dict(user: User, include_profile=True):
    data = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "isActive": bool(user.is_active),
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }
    if not include_profile:
        return data

    if user.role == "admin" and user.admin_profile:
        data["profile"] = _admin_profile(user.admin_profile)
    elif user.role == "car_washer" and user.washer_profile:
        data["profile"] = _washer_profile(user.washer_profile)
    else:
        data["profile"] = None
    data["nextOfKin"] = _next_of_kin(user)
    return data


def vehicle_to_dict(vehicle: Vehicle):
    return {
        "id": vehicle.id,
        "license_plate": vehicle.license_plate,
        "type": vehicle.vehicle_type,
        "model": vehicle.model,
        "color": vehicle.color,
        "is_primary": bool(vehicle.is_primary),
    }


def customer_to_dict(customer: Customer, include_vehicles=True):
    data = {
        "id": customer.id,
        "name": customer.name,
        "email": customer.email,
        "phone": customer.phone,
        "isRegistered": bool(customer.is_registered),
        "totalVisits": customer.total_visits or 0,
        "totalSpent": money(customer.total_spent),
        "createdAt": iso(customer.created_at),
    }
    if include_vehicles:
        data["vehicles"] = [vehicle_to_dict(v) for v in customer.vehicles]
    return data


def service_to_dict(service: Service):
    return {
        "id": service.id,
        "name": service.name,
        "description": service.description,
        "price": money(service.price),
        "duration": service.duration,
        "category": service.category,
        "washerCommissionPercentage": float(service.washer_commission_percentage),
        "companyCommissionPercentage": float(service.company_commission_percentage),
        "maxWashersPerService": service.max_washers_per_service,
        "commissionNotes": service.commission_notes,
        "isActive": bool(service.is_active),
        "createdAt": iso(service.created_at),
        "updatedAt": iso(service.updated_at),
    }


def material_to_dict(material: CheckInMaterial):
    return {
        "id": material.id,
        "checkInId": material.check_in_id,
        "washerId": material.washer_id,
        "materialId": material.material_id,
        "materialName": material.material_name,
        "quantityUsed": material.quantity_used,
        "usageDate": iso(material.usage_date),
    }


def check_in_to_dict(check_in: CheckIn):
    customer = check_in.customer
    washer = check_in.assigned_washer
    return {
        "id": check_in.id,
        "customerId": check_in.customer_id,
        "customerName": customer.name if customer else None,
        "customerPhone": customer.phone if customer else None,
        "licensePlate": check_in.license_plate,
        "vehicleType": check_in.vehicle_type,
        "vehicleColor": check_in.vehicle_color,
        "vehicleModel": check_in.vehicle_model,
        "status": check_in.status,
        "washType": check_in.wash_type,
        "valuableItems": check_in.valuable_items,
        "securityCode": check_in.security_code,
        "hasPasscode": bool(check_in.user_code),
        "checkInProcess": check_in.check_in_process,
        "remarks": check_in.remarks,
        "checkInTime": iso(check_in.check_in_time),
        "completedTime": iso(check_in.completed_time),
        "paidTime": iso(check_in.paid_time),
        "assignedWasherId": check_in.assigned_washer_id,
        "assignedWasherName": washer.name if washer else None,
        "assignedAdminId": check_in.assigned_admin_id,
        "estimatedDuration": check_in.estimated_duration,
        "actualDuration": check_in.actual_duration,
        "totalPrice": money(check_in.total_price),
        "washerIncome": money(check_in.washer_income) if check_in.washer_income is not None else None,
        "companyIncome": money(check_in.company_income) if check_in.company_income is not None else None,
        "paymentStatus": check_in.payment_status,
        "paymentMethod": check_in.payment_method,
        "washerCompletionStatus": bool(check_in.washer_completion_status),
        "reason": check_in.reason,
        "services": [
            {
                "id": line.id,
                "serviceId": line.service_id,
                "serviceName": line.service_name,
                "workerId": line.worker_id,
                "workerName": line.worker.name if line.worker else None,
                "price": money(line.price),
                "customPrice": money(line.custom_price) if line.custom_price is not None else None,
                "duration": line.duration,
                "washerCommissionPercentage": float(line.washer_commission_percentage),
                "companyCommissionPercentage": float(line.company_commission_percentage),
            }
            for line in check_in.services
        ],
        "createdAt": iso(check_in.created_at),
        "updatedAt": iso(check_in.updated_at),
    }


def tool_to_dict(tool: WasherTool):
    return {
        "id": tool.id,
        "washerId": tool.washer_id,
        "washerName": tool.washer.name if tool.washer else None,
        "toolName": tool.tool_name,
        "toolType": tool.tool_type,
        "quantity": tool.quantity,
        "amount": money(tool.amount),
        "totalValue": money(tool.amount * tool.quantity),
        "assignedDate": iso(tool.assigned_date),
        "assignedBy": tool.assigned_by,
        "isReturned": bool(tool.is_returned),
        "returnedDate": iso(tool.returned_date),
        "notes": tool.notes,
    }


def payment_request_to_dict(payment_request: PaymentRequest):
    washer = payment_request.washer
    return {
        "id": payment_request.id,
        "washer_id": payment_request.washer_id,
        "washer_name": washer.name if washer else None,
        "admin_id": payment_request.admin_id,
        "approval_date": iso(payment_request.approval_date),
        "total_earnings": money(payment_request.total_earnings),
        "material_deductions": money(payment_request.material_deductions),
        "tool_deductions": money(payment_request.tool_deductions),
        "amount": money(payment_request.amount),
        "status": payment_request.status,
        "notes": payment_request.notes,
        "admin_notes": payment_request.admin_notes,
        "paid_at": iso(payment_request.paid_at),
        "created_at": iso(payment_request.created_at),
        "updated_at": iso(payment_request.updated_at),
    }


def milestone_to_dict(milestone: Milestone):
    return {
        "id": milestone.id,
        "name": milestone.name,
        "description": milestone.description,
        "type": milestone.type,
        "condition": milestone.condition,
        "reward": milestone.reward,
        "isActive": bool(milestone.is_active),
        "createdBy": milestone.created_by,
        "createdAt": iso(milestone.created_at),
    }


def achievement_to_dict(achievement: CustomerMilestoneAchievement):
    return {
        "id": achievement.id,
        "customerId": achievement.customer_id,
        "customerName": achievement.customer.name if achievement.customer else None,
        "milestoneId": achievement.milestone_id,
        "milestoneName": achievement.milestone.name if achievement.milestone else None,
        "achievedAt": iso(achievement.achieved_at),
        "achievedValue": float(achievement.achieved_value),
        "rewardClaimed": bool(achievement.reward_claimed),
        "claimedAt": iso(achievement.claimed_at),
        "claimedBy": achievement.claimed_by,
        "notes": achievement.notes,
    }


def bonus_to_dict(bonus: Bonus):
    return {
        "id": bonus.id,
        "type": bonus.type,
        "recipientId": bonus.recipient_id,
        "amount": money(bonus.amount),
        "reason": bonus.reason,
        "milestoneId": bonus.milestone_id,
        "milestone": bonus.milestone.name if bonus.milestone else None,
        "status": bonus.status,
        "createdBy": bonus.created_by,
        "approvedBy": bonus.approved_by,
        "approvedAt": iso(bonus.approved_at),
        "paidAt": iso(bonus.paid_at),
        "createdAt": iso(bonus.created_at),
    }


def expense_to_dict(expense: Expense):
    return {
        "id": expense.id,
        "category": expense.category,
        "description": expense.description,
        "amount": money(expense.amount),
        "expenseDate": iso(expense.expense_date),
        "createdBy": expense.created_by,
        "bonusId": expense.bonus_id,
    }


def sale_to_dict(sale: SalesTransaction):
    return {
        "id": sale.id,
        "adminId": sale.admin_id,
        "description": sale.description,
        "totalAmount": money(sale.total_amount),
        "status": sale.status,
        "createdAt": iso(sale.created_at),
    }
