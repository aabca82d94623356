from .history import DiamondStatus, HistoryParticipant, HistoryShift, HistoryStaff, HistoryTag, PaymentDiamond
from .loom import (
    AttendanceStatus,
    CancellationType,
    LoomAuditLog,
    LoomInstance,
    LoomSetting,
    ParticipantAttendance,
    RouteStatus,
    ShiftStatus,
    StaffAssignment,
    StaffRole,
    VehicleAssignment,
    VehicleStatus,
)
from .resource import Participant, Staff, StaffAvailability, Vehicle, VehicleBlackout, Venue
from .rules import (
    ExceptionType,
    ParticipantEnrolment,
    ProgramRule,
    RateLineItem,
    RuleException,
    StaffingRatioBracket,
    StaffingRatioTable,
)

__all__ = [
    "Venue",
    "Participant",
    "Staff",
    "StaffAvailability",
    "Vehicle",
    "VehicleBlackout",
    "ExceptionType",
    "ProgramRule",
    "RuleException",
    "StaffingRatioTable",
    "StaffingRatioBracket",
    "ParticipantEnrolment",
    "RateLineItem",
    "AttendanceStatus",
    "CancellationType",
    "StaffRole",
    "ShiftStatus",
    "VehicleStatus",
    "RouteStatus",
    "LoomInstance",
    "ParticipantAttendance",
    "StaffAssignment",
    "VehicleAssignment",
    "LoomSetting",
    "LoomAuditLog",
    "DiamondStatus",
    "HistoryShift",
    "HistoryParticipant",
    "HistoryStaff",
    "HistoryTag",
    "PaymentDiamond",
]
