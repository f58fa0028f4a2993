"""Actionable error catalog for remoteops."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_credential": {
        "what": "No credential found: environment variable {env_var} is not set and no key file was given.",
        "next": "Export {env_var} or pass `--key-file` before retrying.",
    },
    "authentication_failed": {
        "what": "Authentication failed for {username}@{host}:{port}.",
        "next": "Check the user name and the credential exported in the environment.",
    },
    "host_unreachable": {
        "what": "Could not connect to {host}:{port}: {reason}",
        "next": "Check the address, the port and any firewall between you and the host.",
    },
    "ssh_negotiation_failed": {
        "what": "SSH negotiation with {host}:{port} failed: {reason}",
        "next": "Verify the host key and that the remote SSH daemon is healthy.",
    },
    "command_timeout": {
        "what": "Command timed out after {timeout}s on {host}: {command}",
        "next": "Raise `--timeout` or the step `timeout`, and check the command does not wait for input.",
    },
    "session_closed": {
        "what": "The session to {host}:{port} is closed.",
        "next": "Open a new session; a session cannot be reused after close or timeout.",
    },
    "container_not_found": {
        "what": "No container matched `{alias}` ({query}).",
        "next": "Run `docker ps -a` on the host and adjust the query filters.",
    },
    "container_ambiguous": {
        "what": "Container query `{alias}` matched {count} containers: {names}.",
        "next": "Narrow the query with a more specific name, ancestor or label filter.",
    },
    "unknown_container_alias": {
        "what": "Command references unknown container alias `{alias}`.",
        "next": "Declare the alias under `containers:` in the plan file.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
