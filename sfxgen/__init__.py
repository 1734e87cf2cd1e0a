"""
sfxgen — encrypted self-extracting archives.

Features:

- Packs an ordered selection of files and directories into one ZIP container.
- Encrypts it with AES-256-CBC under a key derived from the bundle metadata
  and an optional passphrase.
- Ships the encrypted blob with its metadata inside a runnable zipapp whose
  extractor re-derives the key, decrypts and unpacks.

There is no integrity tag on the ciphertext, and the default passphrase
challenge is recoverable from the artifact. Use ``--hash-challenge`` when
the passphrase itself must not be disclosed.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "packer",
    "cipher",
    "keyderive",
    "bundle",
    "extractor",
    "generator",
]

# Programmatic API: sfxgen.generator.seal and sfxgen.extractor.extract_bundle;
# the CLI functions in sfxgen.cli (cmd_seal/cmd_unseal) take normal parameters.
