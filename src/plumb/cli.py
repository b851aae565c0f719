"""The ``plumb init`` subcommand."""

from plumb.config import PLUMB_HOME

DEFAULT_SETTINGS_YAML = """\
plumb:
  # Rerun the command after every keystroke instead of on Enter.
  unsafe_full_throttle: false
  shell: null
  output_script: null

capture:
  buffer_size: 41943040

debug:
  enabled: false
  log_file: plumb.debug
"""


def run_init() -> None:
    """Bootstrap the ~/.plumb directory with a default settings file.

    Idempotent: never overwrites an existing settings.yaml.
    """
    home = PLUMB_HOME.expanduser()
    created_anything = False

    if not home.exists():
        home.mkdir(parents=True)
        print(f"Created {home}")
        created_anything = True

    settings_path = home / "settings.yaml"
    if not settings_path.exists():
        settings_path.write_text(DEFAULT_SETTINGS_YAML)
        print(f"Created {settings_path}")
        created_anything = True

    if not created_anything:
        print(f"Already initialized: {home}")
