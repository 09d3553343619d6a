from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata

ROLES = ("super_admin", "admin", "car_washer")
CHECK_IN_STATUSES = ("pending", "in_progress", "completed", "paid", "cancelled")
WASH_TYPES = ("instant", "delayed")
PAYMENT_STATUSES = ("pending", "paid")
PAYMENT_METHODS = ("cash", "card", "pos")
SERVICE_CATEGORIES = ("exterior", "interior", "engine", "vacuum", "complementary")
TOOL_TYPES = ("tool", "equipment", "material", "supply")
PAYMENT_REQUEST_STATUSES = ("pending", "approved", "rejected", "paid")
MILESTONE_TYPES = ("visits", "spending", "custom")
BONUS_TYPES = ("customer", "washer")
BONUS_STATUSES = ("pending", "approved", "paid")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (Index("email", "email", unique=True),)

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    name = mapped_column(String(150), nullable=False)
    email = mapped_column(String(255), nullable=False)
    phone = mapped_column(String(50), nullable=False)
    password_hash = mapped_column(String(128), nullable=False)
    role = mapped_column(Enum(*ROLES, name="user_role"), nullable=False)
    is_active = mapped_column(Boolean, nullable=False, server_default=text("1"))
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    admin_profile: Mapped[Optional["AdminProfile"]] = relationship(
        "AdminProfile", uselist=False, back_populates="user"
    )
    washer_profile: Mapped[Optional["CarWasherProfile"]] = relationship(
        "CarWasherProfile",
        uselist=False,
        back_populates="user",
        foreign_keys="CarWasherProfile.user_id",
    )
    next_of_kin: Mapped[List["NextOfKin"]] = relationship(
        "NextOfKin", uselist=True, back_populates="user", cascade="all, delete-orphan"
    )


class Location(Base):
    __tablename__ = "locations"
    __table_args__ = (Index("ix_locations_lga", "lga"),)

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    address = mapped_column(String(255), nullable=False)
    lga = mapped_column(String(100), nullable=False)
    is_active = mapped_column(Boolean, nullable=False, server_default=text("1"))
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )


class AdminProfile(Base):
    __tablename__ = "admin_profiles"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_admin_profile_user"
        ),
        ForeignKeyConstraint(
            ["location_id"], ["locations.id"], name="fk_admin_profile_location"
        ),
        Index("admin_user_id_unique", "user_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id = mapped_column(Integer, nullable=False)
    location_id = mapped_column(Integer)
    address = mapped_column(String(255))
    cv_url = mapped_column(Text)
    picture_url = mapped_column(Text)

    user: Mapped["User"] = relationship("User", back_populates="admin_profile")
    location: Mapped[Optional["Location"]] = relationship("Location")


class CarWasherProfile(Base):
    __tablename__ = "car_washer_profiles"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_washer_profile_user"
        ),
        ForeignKeyConstraint(
            ["assigned_admin_id"], ["users.id"], name="fk_washer_profile_admin"
        ),
        ForeignKeyConstraint(
            ["assigned_location_id"], ["locations.id"], name="fk_washer_profile_location"
        ),
        Index("washer_user_id_unique", "user_id", unique=True),
        Index("ix_washer_location", "assigned_location_id"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id = mapped_column(Integer, nullable=False)
    assigned_admin_id = mapped_column(Integer)
    assigned_location_id = mapped_column(Integer)
    hourly_rate = mapped_column(Numeric(10, 2))
    total_earnings = mapped_column(
        Numeric(12, 2), nullable=False, server_default=text("0")
    )
    is_available = mapped_column(Boolean, nullable=False, server_default=text("1"))
    picture_url = mapped_column(Text)
    bank_name = mapped_column(String(100))
    account_number = mapped_column(String(30))
    account_name = mapped_column(String(150))

    user: Mapped["User"] = relationship(
        "User", back_populates="washer_profile", foreign_keys=[user_id]
    )
    location: Mapped[Optional["Location"]] = relationship("Location")


class NextOfKin(Base):
    __tablename__ = "next_of_kin"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_next_of_kin_user"
        ),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id = mapped_column(Integer, nullable=False)
    name = mapped_column(String(150), nullable=False)
    phone = mapped_column(String(50), nullable=False)
    address = mapped_column(String(255), nullable=False)
    relationship_type = mapped_column(String(50))

    user: Mapped["User"] = relationship("User", back_populates="next_of_kin")


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (Index("ix_customers_phone", "phone"),)

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    name = mapped_column(String(150), nullable=False)
    email = mapped_column(String(255))
    phone = mapped_column(String(50), nullable=False)
    is_registered = mapped_column(Boolean, nullable=False, server_default=text("1"))
    total_visits = mapped_column(Integer, nullable=False, server_default=text("0"))
    total_spent = mapped_column(Numeric(12, 2), nullable=False, server_default=text("0"))
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    vehicles: Mapped[List["Vehicle"]] = relationship(
        "Vehicle", uselist=True, back_populates="customer", cascade="all, delete-orphan"
    )


class Vehicle(Base):
    __tablename__ = "vehicles"
    __table_args__ = (
        ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], ondelete="CASCADE", name="fk_vehicle_customer"
        ),
        Index("ix_vehicles_license_plate", "license_plate"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id = mapped_column(Integer, nullable=False)
    license_plate = mapped_column(String(20), nullable=False)
    vehicle_type = mapped_column(String(50), nullable=False)
    model = mapped_column(String(100))
    color = mapped_column(String(50), nullable=False)
    is_primary = mapped_column(Boolean, nullable=False, server_default=text("0"))

    customer: Mapped["Customer"] = relationship("Customer", back_populates="vehicles")


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (Index("service_name_unique", "name", unique=True),)

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    name = mapped_column(String(100), nullable=False)
    description = mapped_column(Text)
    price = mapped_column(Numeric(10, 2), nullable=False, server_default=text("0"))
    duration = mapped_column(Integer, nullable=False)
    category = mapped_column(Enum(*SERVICE_CATEGORIES, name="service_category"), nullable=False)
    washer_commission_percentage = mapped_column(
        Numeric(5, 2), nullable=False, server_default=text("40")
    )
    company_commission_percentage = mapped_column(
        Numeric(5, 2), nullable=False, server_default=text("60")
    )
    max_washers_per_service = mapped_column(Integer, nullable=False, server_default=text("2"))
    commission_notes = mapped_column(Text)
    is_active = mapped_column(Boolean, nullable=False, server_default=text("1"))
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )


class CheckIn(Base):
    __tablename__ = "car_check_ins"
    __table_args__ = (
        ForeignKeyConstraint(["customer_id"], ["customers.id"], name="fk_checkin_customer"),
        ForeignKeyConstraint(
            ["assigned_washer_id"], ["users.id"], name="fk_checkin_washer"
        ),
        ForeignKeyConstraint(["assigned_admin_id"], ["users.id"], name="fk_checkin_admin"),
        Index("ix_checkin_plate_time", "license_plate", "check_in_time"),
        Index("ix_checkin_status", "status"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id = mapped_column(Integer)
    license_plate = mapped_column(String(20), nullable=False)
    vehicle_type = mapped_column(String(50), nullable=False)
    vehicle_color = mapped_column(String(50), nullable=False)
    vehicle_model = mapped_column(String(100))
    status = mapped_column(
        Enum(*CHECK_IN_STATUSES, name="check_in_status"),
        nullable=False,
        server_default=text("'pending'"),
    )
    wash_type = mapped_column(Enum(*WASH_TYPES, name="wash_type"), nullable=False)
    valuable_items = mapped_column(Text, nullable=False)
    security_code = mapped_column(String(50))
    user_code = mapped_column(String(50))
    check_in_process = mapped_column(Text)
    remarks = mapped_column(Text)
    check_in_time = mapped_column(DateTime, nullable=False, server_default=func.now())
    completed_time = mapped_column(DateTime)
    paid_time = mapped_column(DateTime)
    assigned_washer_id = mapped_column(Integer)
    assigned_admin_id = mapped_column(Integer, nullable=False)
    estimated_duration = mapped_column(Integer, nullable=False, server_default=text("0"))
    actual_duration = mapped_column(Integer)
    total_price = mapped_column(Numeric(12, 2), nullable=False, server_default=text("0"))
    washer_income = mapped_column(Numeric(12, 2))
    company_income = mapped_column(Numeric(12, 2))
    payment_status = mapped_column(
        Enum(*PAYMENT_STATUSES, name="payment_status"),
        nullable=False,
        server_default=text("'pending'"),
    )
    payment_method = mapped_column(Enum(*PAYMENT_METHODS, name="payment_method"))
    washer_completion_status = mapped_column(
        Boolean, nullable=False, server_default=text("0")
    )
    reason = mapped_column(Text)
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    customer: Mapped[Optional["Customer"]] = relationship("Customer")
    assigned_washer: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[assigned_washer_id]
    )
    assigned_admin: Mapped["User"] = relationship("User", foreign_keys=[assigned_admin_id])
    services: Mapped[List["CheckInService"]] = relationship(
        "CheckInService",
        uselist=True,
        back_populates="check_in",
        cascade="all, delete-orphan",
        order_by="CheckInService.id",
    )
    materials: Mapped[List["CheckInMaterial"]] = relationship(
        "CheckInMaterial", uselist=True, back_populates="check_in"
    )


class CheckInService(Base):
    __tablename__ = "check_in_services"
    __table_args__ = (
        ForeignKeyConstraint(
            ["check_in_id"], ["car_check_ins.id"], ondelete="CASCADE", name="fk_cis_checkin"
        ),
        ForeignKeyConstraint(["service_id"], ["services.id"], name="fk_cis_service"),
        ForeignKeyConstraint(["worker_id"], ["users.id"], name="fk_cis_worker"),
        Index("ix_cis_worker", "worker_id"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    check_in_id = mapped_column(Integer, nullable=False)
    # NULL once the catalog entry has been hard-deleted; the snapshot columns remain
    service_id = mapped_column(Integer)
    worker_id = mapped_column(Integer, nullable=False)
    service_name = mapped_column(String(100), nullable=False)
    price = mapped_column(Numeric(10, 2), nullable=False)
    custom_price = mapped_column(Numeric(10, 2))
    duration = mapped_column(Integer, nullable=False)
    washer_commission_percentage = mapped_column(Numeric(5, 2), nullable=False)
    company_commission_percentage = mapped_column(Numeric(5, 2), nullable=False)

    check_in: Mapped["CheckIn"] = relationship("CheckIn", back_populates="services")
    worker: Mapped["User"] = relationship("User")


class WasherTool(Base):
    __tablename__ = "washer_tools"
    __table_args__ = (
        ForeignKeyConstraint(["washer_id"], ["users.id"], name="fk_tool_washer"),
        ForeignKeyConstraint(["assigned_by"], ["users.id"], name="fk_tool_assigned_by"),
        Index("ix_tool_washer_returned", "washer_id", "is_returned"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    washer_id = mapped_column(Integer, nullable=False)
    tool_name = mapped_column(String(100), nullable=False)
    tool_type = mapped_column(Enum(*TOOL_TYPES, name="tool_type"), nullable=False)
    quantity = mapped_column(Integer, nullable=False, server_default=text("1"))
    amount = mapped_column(Numeric(10, 2), nullable=False, server_default=text("0"))
    assigned_date = mapped_column(DateTime, nullable=False, server_default=func.now())
    assigned_by = mapped_column(Integer)
    is_returned = mapped_column(Boolean, nullable=False, server_default=text("0"))
    returned_date = mapped_column(DateTime)
    notes = mapped_column(Text)

    washer: Mapped["User"] = relationship("User", foreign_keys=[washer_id])


class CheckInMaterial(Base):
    __tablename__ = "check_in_materials"
    __table_args__ = (
        ForeignKeyConstraint(["check_in_id"], ["car_check_ins.id"], name="fk_cim_checkin"),
        ForeignKeyConstraint(["washer_id"], ["users.id"], name="fk_cim_washer"),
        ForeignKeyConstraint(["material_id"], ["washer_tools.id"], name="fk_cim_material"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    check_in_id = mapped_column(Integer, nullable=False)
    washer_id = mapped_column(Integer, nullable=False)
    material_id = mapped_column(Integer, nullable=False)
    material_name = mapped_column(String(100), nullable=False)
    quantity_used = mapped_column(Integer, nullable=False)
    usage_date = mapped_column(DateTime, nullable=False, server_default=func.now())

    check_in: Mapped["CheckIn"] = relationship("CheckIn", back_populates="materials")


class PaymentRequest(Base):
    __tablename__ = "payment_requests"
    __table_args__ = (
        ForeignKeyConstraint(["washer_id"], ["users.id"], name="fk_payreq_washer"),
        ForeignKeyConstraint(["admin_id"], ["users.id"], name="fk_payreq_admin"),
        Index("ix_payreq_washer_status", "washer_id", "status"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    washer_id = mapped_column(Integer, nullable=False)
    admin_id = mapped_column(Integer)
    approval_date = mapped_column(DateTime)
    total_earnings = mapped_column(Numeric(12, 2), nullable=False)
    material_deductions = mapped_column(
        Numeric(12, 2), nullable=False, server_default=text("0")
    )
    tool_deductions = mapped_column(Numeric(12, 2), nullable=False, server_default=text("0"))
    amount = mapped_column(Numeric(12, 2), nullable=False)
    status = mapped_column(
        Enum(*PAYMENT_REQUEST_STATUSES, name="payment_request_status"),
        nullable=False,
        server_default=text("'pending'"),
    )
    notes = mapped_column(Text)
    admin_notes = mapped_column(Text)
    paid_at = mapped_column(DateTime)
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    washer: Mapped["User"] = relationship("User", foreign_keys=[washer_id])
    reviewer: Mapped[Optional["User"]] = relationship("User", foreign_keys=[admin_id])


class Milestone(Base):
    __tablename__ = "milestones"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    name = mapped_column(String(150), nullable=False)
    description = mapped_column(Text)
    type = mapped_column(Enum(*MILESTONE_TYPES, name="milestone_type"), nullable=False)
    # {"operator": ">=", "value": 5}
    condition = mapped_column(JSON, nullable=False)
    reward = mapped_column(String(255))
    is_active = mapped_column(Boolean, nullable=False, server_default=text("1"))
    created_by = mapped_column(Integer)
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    achievements: Mapped[List["CustomerMilestoneAchievement"]] = relationship(
        "CustomerMilestoneAchievement", uselist=True, back_populates="milestone"
    )


class CustomerMilestoneAchievement(Base):
    __tablename__ = "customer_milestone_achievements"
    __table_args__ = (
        ForeignKeyConstraint(["customer_id"], ["customers.id"], name="fk_cma_customer"),
        ForeignKeyConstraint(["milestone_id"], ["milestones.id"], name="fk_cma_milestone"),
        ForeignKeyConstraint(["claimed_by"], ["users.id"], name="fk_cma_claimed_by"),
        UniqueConstraint("customer_id", "milestone_id", name="uq_customer_milestone"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id = mapped_column(Integer, nullable=False)
    milestone_id = mapped_column(Integer, nullable=False)
    achieved_at = mapped_column(DateTime, nullable=False, server_default=func.now())
    achieved_value = mapped_column(Numeric(12, 2), nullable=False)
    reward_claimed = mapped_column(Boolean, nullable=False, server_default=text("0"))
    claimed_at = mapped_column(DateTime)
    claimed_by = mapped_column(Integer)
    notes = mapped_column(Text)

    customer: Mapped["Customer"] = relationship("Customer")
    milestone: Mapped["Milestone"] = relationship("Milestone", back_populates="achievements")


class Bonus(Base):
    __tablename__ = "bonuses"
    __table_args__ = (
        ForeignKeyConstraint(["milestone_id"], ["milestones.id"], name="fk_bonus_milestone"),
        Index("ix_bonus_recipient", "type", "recipient_id"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    type = mapped_column(Enum(*BONUS_TYPES, name="bonus_type"), nullable=False)
    recipient_id = mapped_column(Integer, nullable=False)
    amount = mapped_column(Numeric(12, 2), nullable=False)
    reason = mapped_column(Text, nullable=False)
    milestone_id = mapped_column(Integer)
    status = mapped_column(
        Enum(*BONUS_STATUSES, name="bonus_status"),
        nullable=False,
        server_default=text("'pending'"),
    )
    created_by = mapped_column(Integer)
    approved_by = mapped_column(Integer)
    approved_at = mapped_column(DateTime)
    paid_at = mapped_column(DateTime)
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())

    milestone: Mapped[Optional["Milestone"]] = relationship("Milestone")


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        ForeignKeyConstraint(["bonus_id"], ["bonuses.id"], name="fk_expense_bonus"),
        ForeignKeyConstraint(["created_by"], ["users.id"], name="fk_expense_created_by"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    category = mapped_column(String(50), nullable=False)
    description = mapped_column(Text, nullable=False)
    amount = mapped_column(Numeric(12, 2), nullable=False)
    expense_date = mapped_column(DateTime, nullable=False, server_default=func.now())
    created_by = mapped_column(Integer)
    bonus_id = mapped_column(Integer)


class SalesTransaction(Base):
    __tablename__ = "sales_transactions"
    __table_args__ = (
        ForeignKeyConstraint(["admin_id"], ["users.id"], name="fk_sale_admin"),
        Index("ix_sale_created", "created_at"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    admin_id = mapped_column(Integer, nullable=False)
    description = mapped_column(String(255))
    total_amount = mapped_column(Numeric(12, 2), nullable=False)
    status = mapped_column(
        Enum("completed", "refunded", name="sale_status"),
        nullable=False,
        server_default=text("'completed'"),
    )
    created_at = mapped_column(DateTime, nullable=False, server_default=func.now())
