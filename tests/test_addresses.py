import pytest

from openstack_bastion.bastion.addresses import (
    ensure_associate_fip_with_instance,
    ensure_public_ip_address,
    get_external_network_info,
    remove_public_ip_address,
)
from openstack_bastion.bastion.compute import ensure_compute_instance
from openstack_bastion.exceptions import (
    AmbiguousResourceError,
    ConfigurationError,
    NotReadyError,
)
from openstack_bastion.resources.openstack import STATUS_DOWN, FloatingIP, Port


def test_external_network_info_uses_first_ipv4_address(cloud):
    assert get_external_network_info(cloud, "cluster1") == ("ext-net", "ext-subnet")


def test_external_network_info_requires_router(cloud):
    with pytest.raises(ConfigurationError, match="router other not found"):
        get_external_network_info(cloud, "other")


@pytest.mark.parametrize("fixed_ips", [
    [],
    [{"subnet_id": "v6", "ip_address": "2001:db8::1"}],
])
def test_external_network_info_requires_ipv4_address(cloud, fixed_ips):
    cloud.add_router("other", "ext-net", fixed_ips)

    with pytest.raises(ConfigurationError):
        get_external_network_info(cloud, "other")


def test_creates_floating_ip(cloud, opt, poller, log):
    fip = ensure_public_ip_address(cloud, opt, poller, log)

    assert fip.is_active
    assert fip.description == opt.instance_name
    assert cloud.mutations == [("create_floating_ip", "ext-net", "ext-subnet", opt.instance_name)]


def test_existing_floating_ip_is_returned(cloud, opt, poller, log):
    first = ensure_public_ip_address(cloud, opt, poller, log)
    cloud.calls.clear()

    assert ensure_public_ip_address(cloud, opt, poller, log).id == first.id
    assert cloud.mutations == []


def test_inactive_floating_ip_is_not_ready(cloud, opt, poller, log, sleeps):
    cloud.fip_status = STATUS_DOWN

    with pytest.raises(NotReadyError):
        ensure_public_ip_address(cloud, opt, poller, log)
    assert len(sleeps) == poller.attempts - 1

    cloud.calls.clear()
    with pytest.raises(NotReadyError, match="not active yet"):
        ensure_public_ip_address(cloud, opt, poller, log)
    assert cloud.mutations == []


def test_duplicate_floating_ips_are_ambiguous(cloud, opt, poller, log):
    for index in range(2):
        cloud.floating_ips[f"fip-{index}"] = FloatingIP(
            id=f"fip-{index}", description=opt.instance_name, status="ACTIVE")

    with pytest.raises(AmbiguousResourceError):
        ensure_public_ip_address(cloud, opt, poller, log)


@pytest.fixture
def server(cloud, opt, poller, log):
    server = ensure_compute_instance(cloud, cloud, opt, "m1.small", "ubuntu-22.04", poller, log)
    cloud.calls.clear()
    return server


@pytest.fixture
def fip(cloud, opt, poller, log):
    fip = ensure_public_ip_address(cloud, opt, poller, log)
    cloud.calls.clear()
    return fip


def test_associates_floating_ip_with_active_port(cloud, server, fip, log):
    port = cloud.list_ports(server.id)[0]

    bound = ensure_associate_fip_with_instance(cloud, server, fip, log)

    assert bound.port_id == port.id
    assert cloud.mutations == [("associate_floating_ip", fip.id, port.id)]


def test_skips_inactive_ports(cloud, server, fip, log):
    down = Port(id="port-down", status=STATUS_DOWN, device_id=server.id)
    cloud.ports = {down.id: down, **cloud.ports}
    active = [p for p in cloud.list_ports(server.id) if p.status == "ACTIVE"][0]

    bound = ensure_associate_fip_with_instance(cloud, server, fip, log)

    assert bound.port_id == active.id


def test_bound_floating_ip_is_left_alone(cloud, server, fip, log):
    bound = ensure_associate_fip_with_instance(cloud, server, fip, log)
    cloud.calls.clear()

    assert ensure_associate_fip_with_instance(cloud, server, bound, log) == bound
    assert cloud.mutations == []


def test_no_active_port_is_not_ready(cloud, server, fip, log):
    for port in cloud.list_ports(server.id):
        port.status = STATUS_DOWN

    with pytest.raises(NotReadyError, match="no active port"):
        ensure_associate_fip_with_instance(cloud, server, fip, log)
    assert cloud.mutations == []


def test_remove_public_ip_address(cloud, opt, fip, log):
    remove_public_ip_address(cloud, opt, log)
    remove_public_ip_address(cloud, opt, log)

    assert cloud.mutations == [("delete_floating_ip", fip.id)]
