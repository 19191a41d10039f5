from enum import Enum


class Visibility(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    APP_SPECIFIC = "APP_SPECIFIC"
    AUTHENTICATED_USERS = "AUTHENTICATED_USERS"


class IdentityCategory(str, Enum):
    PERSONAL = "PERSONAL"
    PROFESSIONAL = "PROFESSIONAL"
    ACADEMIC = "ACADEMIC"
    FAMILY = "FAMILY"
    SOCIAL_MEDIA = "SOCIAL_MEDIA"
    MESSAGING_PLATFORM = "MESSAGING_PLATFORM"
    GAMING = "GAMING"
    CREATIVE_ENDEAVOR = "CREATIVE_ENDEAVOR"
    HEALTH_WELLNESS = "HEALTH_WELLNESS"
    TRAVEL_ADVENTURE = "TRAVEL_ADVENTURE"
    LEGAL_ADMINISTRATIVE = "LEGAL_ADMINISTRATIVE"
    FINANCIAL_TRANSACTIONS = "FINANCIAL_TRANSACTIONS"
    E_COMMERCE_SHOPPING = "E_COMMERCE_SHOPPING"
    GOVERNMENT_SERVICES = "GOVERNMENT_SERVICES"
    UTILITY_SERVICES = "UTILITY_SERVICES"
    IOT_DEVICE = "IOT_DEVICE"
    DEVELOPMENT_CODING = "DEVELOPMENT_CODING"
    COMMUNITY_FORUM = "COMMUNITY_FORUM"
    ANONYMOUS_PSEUDONYMOUS = "ANONYMOUS_PSEUDONYMOUS"
    CUSTOM = "CUSTOM"


class ConsentRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AuditActorType(str, Enum):
    USER = "USER"
    APP = "APP"
    SYSTEM = "SYSTEM"


class AuditOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
