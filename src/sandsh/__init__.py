"""sandsh — a sandboxed, simulated shell.

sandsh runs shell command lines against an in-memory filesystem with
users, groups and Unix-style permissions.  It never touches the host:
every ``ls``, ``rm`` or ``su`` acts on the simulated world.

The pieces, bottom up:

- ``filesystem`` / ``users`` — the simulated world.
- ``parser`` / ``expansion`` — turn a line into pipelines.
- ``definitions`` / ``dispatch`` — declarative commands and the
  validation wrapper every command runs through.
- ``pipeline`` / ``executor`` — run pipelines, sequences, background
  jobs and scripts.
- ``prompts`` — confirmations and passwords, interactive or scripted.
- ``bootloader`` / ``repl`` / ``web`` — ways to start a session.
"""

__version__ = "1.0.0"
