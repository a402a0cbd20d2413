# db/enums.py
import enum

class UserRole(enum.StrEnum):
    ADMIN = "admin"
    USER = "user"

class ContestStatus(enum.StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"
    COMPLETED = "completed"

class ContestType(enum.StrEnum):
    TRADING = "trading"
    BOURSE = "bourse"
    FORMATION = "formation"
    GENERAL = "general"
    SPECIAL = "special"
    WEEKLY = "weekly"

class PrizeType(enum.StrEnum):
    MONEY = "money"
    FORMATION = "formation"
    EQUIPMENT = "equipment"
    CERTIFICATE = "certificate"
    OTHER = "other"

class ParticipantStatus(enum.StrEnum):
    PARTICIPANT = "participant"
    WINNER = "winner"
