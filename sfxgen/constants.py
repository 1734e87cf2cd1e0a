# Magic and version
BUNDLE_MAGIC = b"SFXBNDL\x00"  # 8 bytes: "SFXBNDL\0"

VERSION_MAJOR = 1
VERSION_MINOR = 0

# Cipher geometry (AES-256-CBC)
IV_SIZE = 16
BLOCK_SIZE = 16
KEY_SIZE = 32

# Key derivation format constants. Changing either value invalidates every
# artifact produced so far; bump VERSION_MAJOR alongside.
KDF_DELIMITER = "|"
KDF_SUFFIX = "SFXGEN-KEY-V1"

# Tick count: 100 ns intervals since 0001-01-01T00:00:00 UTC
TICKS_AT_UNIX_EPOCH = 621_355_968_000_000_000

# Challenge schemes
CHALLENGE_NONE = 0
CHALLENGE_PLAIN = 1
CHALLENGE_ARGON2ID = 2

# Capacity gate
MEMORY_FRACTION = 0.8
FALLBACK_MAX_BYTES = 1024 * 1024 * 1024  # 1 GiB

# ZIP container entries carry a fixed timestamp so output is reproducible
CONTAINER_DATE_TIME = (1980, 1, 1, 0, 0, 0)

# Artifact layout
ARTIFACT_PREFIX = "SelfExtractor_"
ARTIFACT_SUFFIX = ".pyz"
BUNDLE_SUFFIX = ".sfxb"
BUNDLE_RESOURCE = "bundle.sfxb"
ARTIFACT_INTERPRETER = "/usr/bin/env python3"

# Selection / entry kinds
KIND_FILE = 0
KIND_DIR = 1
