import atexit
import resource
import sys

# Memory limit for this process (data segment, bytes)
_MEMORY_LIMIT_BYTES = ###{{{ MEMORY_LIMIT_BYTES }}}###
resource.setrlimit(resource.RLIMIT_DATA, (_MEMORY_LIMIT_BYTES, _MEMORY_LIMIT_BYTES))


def _report_peak_memory():
    usage = resource.getrusage(resource.RUSAGE_SELF)
    sys.stderr.write(f"\n###PEAK_RSS_KB={usage.ru_maxrss}###\n")
    sys.stderr.flush()


atexit.register(_report_peak_memory)


# Using Audit hooks to block the code from harmful actions
def block_harmful_events(event, args):
    # Block the code from writing to files
    if event == "open" and len(args) > 1 and isinstance(args[1], str):
        if any(flag in args[1] for flag in ("w", "a", "x", "+")):
            raise PermissionError(
                f"Writing or modifying files is not allowed. Event: {event}. Args: {args}"
            )

    # Block the code from making any changes to the file systems
    if event in ("os.remove", "os.rename", "os.mkdir", "os.rmdir", "os.chmod"):
        raise PermissionError(
            f"Modifying file systems is not allowed. Event: {event}. Args: {args}"
        )

    # Block the code from making any network actions
    if event.startswith("socket."):
        raise PermissionError(
            f"Network actions are not allowed. Event: {event}. Args: {args}"
        )


sys.addaudithook(block_harmful_events)

# The student's program ===


###{{{ INPUT_PROGRAM }}}###
