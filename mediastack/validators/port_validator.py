import errno
import logging
import socket
from typing import Callable, Dict, List, Tuple

from mediastack.constants import FIELD_PORTS
from mediastack.models import PortMapping, SelectionContext, Service, Severity, ValidationResult

log = logging.getLogger(__name__)

PortProbe = Callable[[int, str], bool]


def is_port_in_use(port: int, protocol: str = "tcp") -> bool:
    """Check whether something on this host is already bound to the port.

    Advisory only: the answer can change before the stack starts.
    """
    kind = socket.SOCK_DGRAM if protocol == "udp" else socket.SOCK_STREAM
    try:
        with socket.socket(socket.AF_INET, kind) as sock:
            sock.bind(("0.0.0.0", port))
    except OSError as exc:
        # EACCES on privileged ports says nothing about whether they are taken.
        return exc.errno == errno.EADDRINUSE
    return False


def effective_ports(services: List[Service], vpn_enabled: bool) -> List[Tuple[PortMapping, str]]:
    """Host ports the stack publishes, paired with the name of the owning service.

    In bridge mode every service publishes its own ports. In VPN mode the
    gateway publishes the ports of every other service on its shared stack.
    """
    exposed: List[Tuple[PortMapping, str]] = []
    for service in services:
        if vpn_enabled and service.is_gateway:
            continue
        for mapping in service.ports:
            exposed.append((mapping, service.name))
    return exposed


def exposed_ports(services: List[Service]) -> List[PortMapping]:
    """Union of non-gateway ports without duplicates, in first-seen order."""
    seen = set()
    ports: List[PortMapping] = []
    for mapping, _owner in effective_ports(services, vpn_enabled=True):
        if mapping in seen:
            continue
        seen.add(mapping)
        ports.append(mapping)
    return ports


def _owners_by_port(context: SelectionContext) -> Dict[Tuple[int, str], List[str]]:
    owners: Dict[Tuple[int, str], List[str]] = {}
    for mapping, owner in effective_ports(context.services, context.vpn_enabled):
        owners.setdefault(mapping.key, []).append(owner)
    return owners


class PortConflictValidator:
    """Validates host port usage for the selected services"""

    def __init__(self, context: SelectionContext, probe: PortProbe = is_port_in_use):
        self.context = context
        self.probe = probe

    def validate(self) -> ValidationResult:
        result = ValidationResult()

        for (port, protocol), owners in _owners_by_port(self.context).items():
            if len(owners) > 1:
                result.add(
                    FIELD_PORTS,
                    f"Port {port}/{protocol} is used by multiple services: {', '.join(owners)}",
                    Severity.error,
                    code="DUPLICATE_PORT_ASSIGNMENT",
                )

            if self.probe(port, protocol):
                log.warning("Host port %s/%s is already bound", port, protocol)
                result.add(
                    FIELD_PORTS,
                    f"Port {port}/{protocol} is already in use on the system",
                    Severity.warning,
                    code="PORT_IN_USE",
                )

        return result


def get_port_conflicts(context: SelectionContext) -> Dict[str, List[str]]:
    """Map ``"port/protocol"`` to the services colliding on it."""
    return {
        f"{port}/{protocol}": owners
        for (port, protocol), owners in _owners_by_port(context).items()
        if len(owners) > 1
    }
