"""
TinyMUD Server Constants

Central location for server configuration defaults, environment variable
names and the fixed reply strings that several modules share. Having these in
one place keeps magic strings from drifting apart between routers and tests.
"""

# =============================================================================
# Wire Protocol
# =============================================================================

# Every outbound line is terminated with CRLF, telnet style
LINE_ENDING = '\r\n'

# Encoding used for both directions; undecodable input bytes are replaced
ENCODING = 'utf-8'

# Bytes read from a socket per recv() call
RECV_CHUNK_SIZE = 4096

# =============================================================================
# Command Shortcuts
# =============================================================================

# A line starting with this character is treated as `say <rest>`
SAY_SHORTCUT = '"'

# A line starting with this character is treated as `emote <rest>`
EMOTE_SHORTCUT = ':'

# Separator between target and free-text argument for @desc and tell (@desc me=Tall)
TARGET_SEPARATOR = '='

# =============================================================================
# Shared Replies
# =============================================================================

# Generic reply for anything the dispatcher can't route
MSG_HUH = 'Huh?'

# Reply when a named target can't be resolved in the current room
MSG_NOT_HERE = "I don't see that here."

# Reply when a handler blows up unexpectedly; the connection stays open
MSG_INTERNAL_ERROR = 'Something went wrong.'

# Placeholder rendered for objects whose description was never set
DEFAULT_DESCRIPTION = 'You see nothing special.'

# Greeting sent when a connection opens
WELCOME_BANNER = (
    'Welcome to TinyMUD!',
    'Type "connect <name> <password>" to log in,',
    'or "newplayer <name> <password>" to create a character.',
)

# =============================================================================
# Server Configuration Defaults
# =============================================================================

# Maximum length for incoming lines to prevent spam/abuse
# Can be overridden with MUD_MAX_MESSAGE_LEN environment variable
DEFAULT_MAX_MESSAGE_LENGTH = 1000

# Name given to room #1, where new players start
DEFAULT_START_ROOM_NAME = 'The Void'

# Default values for server networking
DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 4201

# =============================================================================
# Environment Variable Keys
# =============================================================================

ENV_HOST = 'MUD_HOST'
ENV_PORT = 'MUD_PORT'
ENV_MAX_MESSAGE_LEN = 'MUD_MAX_MESSAGE_LEN'
ENV_START_ROOM_NAME = 'MUD_START_ROOM_NAME'

# When both are set, a wizard character owning room #1 is created at boot
ENV_WIZARD_NAME = 'MUD_WIZARD_NAME'
ENV_WIZARD_PASSWORD = 'MUD_WIZARD_PASSWORD'

# Logging: level name and 'text' or 'json'
ENV_LOG_LEVEL = 'MUD_LOG_LEVEL'
ENV_LOG_FORMAT = 'MUD_LOG_FORMAT'
