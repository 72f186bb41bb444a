import logging
import typing
import mido

logger = logging.getLogger(__name__)


def _prompt_for_device(outputs: typing.List[str]) -> str:
    """Ask on the console which of several MIDI outputs to use."""
    print("\nAvailable MIDI output devices:\n")
    for i, name in enumerate(outputs, 1):
        print(f"  {i}. {name}")
    print()

    while True:
        try:
            choice = int(input(f"Select a device (1-{len(outputs)}): "))
            if 1 <= choice <= len(outputs):
                break
        except (ValueError, EOFError):
            pass
        print(f"Enter a number between 1 and {len(outputs)}.")

    selected_name = outputs[choice - 1]

    print("\nTip: To skip this prompt, set the device in config.yaml:\n")
    print("  midi:")
    print(f"    device: \"{selected_name}\"\n")

    return selected_name


def select_output_device(device_name: typing.Optional[str] = None, interactive: bool = True) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:
    """
    Select and open the MIDI output the sound engine plays through.

    - A named device is opened if present, otherwise nothing is opened.
    - With no name and a single device, that device is used.
    - With no name and several devices, the user is asked (or, when
      `interactive` is False, the first one is used).

    Returns:
        A tuple of (device_name, midi_out_object) or (None, None) on failure.
    """
    try:
        outputs = mido.get_output_names()
        logger.info(f"Available MIDI outputs: {outputs}")

        if not outputs:
            logger.error("No MIDI output devices found.")
            return None, None

        if device_name is not None:
            if device_name not in outputs:
                logger.error(
                    f"MIDI output device '{device_name}' not found. "
                    f"Available devices: {outputs}"
                )
                return None, None
            selected_name = device_name
        elif len(outputs) == 1 or not interactive:
            selected_name = outputs[0]
        else:
            selected_name = _prompt_for_device(outputs)

        midi_out = mido.open_output(selected_name)
        logger.info(f"Opened MIDI output: {selected_name}")
        return selected_name, midi_out

    except Exception as e:
        logger.error(f"Failed to open MIDI output: {e}")
        return None, None
