"""
Application-wide constants
"""

SERVICE_NAME = "fieldservice-backend"

# Role id reserved for the platform owner; holders with a null home tenant pass every module check
PLATFORM_OWNER_ROLE_ID = "platform-owner"

# Permission string meaning "any authenticated user"
ANY_AUTHENTICATED = "*"
