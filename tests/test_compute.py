import pytest

from openstack_bastion.bastion.compute import ensure_compute_instance, get_bastion_instance
from openstack_bastion.exceptions import (
    AmbiguousResourceError,
    BastionError,
    CloudError,
    ConfigurationError,
    NotReadyError,
)
from openstack_bastion.resources.openstack import STATUS_ERROR, Server


def ensure(cloud, opt, poller, log, flavor="m1.small", image="ubuntu-22.04"):
    return ensure_compute_instance(cloud, cloud, opt, flavor, image, poller, log)


def test_creates_instance(cloud, opt, poller, log):
    server = ensure(cloud, opt, poller, log)

    assert server.name == opt.instance_name
    assert server.is_active
    [call] = cloud.mutations
    network = cloud.find_networks_by_name("cluster1")[0]
    flavor = cloud.find_flavor("m1.small")
    image = cloud.find_image("ubuntu-22.04")
    assert call == ("create_server", opt.instance_name, flavor.id, image.id,
                    (opt.security_group_name,), network.id, opt.user_data)


def test_existing_instance_is_returned(cloud, opt, poller, log):
    ensure(cloud, opt, poller, log)
    cloud.calls.clear()

    server = ensure(cloud, opt, poller, log)

    assert server.is_active
    assert cloud.mutations == []


def test_waits_for_instance_to_become_active(cloud, opt, poller, log, sleeps):
    cloud.build_polls = 2

    server = ensure(cloud, opt, poller, log)

    assert server.is_active
    assert sleeps == [5, 5]


def test_building_instance_is_not_ready(cloud, opt, poller, log):
    cloud.build_polls = 10

    with pytest.raises(NotReadyError) as exc:
        ensure(cloud, opt, poller, log)
    assert exc.value.retry_after == 5

    # the next reconcile picks up the same instance
    cloud.calls.clear()
    with pytest.raises(NotReadyError):
        ensure(cloud, opt, poller, log)
    assert cloud.mutations == []


def test_failed_instance_reports_fault(cloud, opt, poller, log):
    cloud.build_polls = 1
    real_get = cloud.get_server

    def get_server(server_id):
        server = real_get(server_id)
        return server.model_copy(update={"status": STATUS_ERROR, "fault": "No valid host"})
    cloud.get_server = get_server

    with pytest.raises(BastionError, match="No valid host"):
        ensure(cloud, opt, poller, log)


@pytest.mark.parametrize("flavor, image", [("missing", "ubuntu-22.04"), ("m1.small", "missing")])
def test_unresolvable_machine_is_fatal(cloud, opt, poller, log, flavor, image):
    with pytest.raises(ConfigurationError, match="missing"):
        ensure(cloud, opt, poller, log, flavor=flavor, image=image)
    assert cloud.mutations == []


def test_missing_network_is_fatal(cloud, opt, poller, log):
    cloud.networks.clear()

    with pytest.raises(ConfigurationError):
        ensure(cloud, opt, poller, log)


def test_create_failure_is_reported(cloud, opt, poller, log):
    def fail(**kwargs):
        raise CloudError("quota exceeded", status_code=413)
    cloud.create_server = fail

    with pytest.raises(CloudError, match="failed to create bastion compute instance") as exc:
        ensure(cloud, opt, poller, log)
    assert exc.value.status_code == 413


def test_duplicate_instances_are_ambiguous(cloud, opt):
    for index in range(2):
        cloud.servers[f"dup-{index}"] = Server(id=f"dup-{index}", name=opt.instance_name)

    with pytest.raises(AmbiguousResourceError):
        get_bastion_instance(cloud, opt.instance_name)
