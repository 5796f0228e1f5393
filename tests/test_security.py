import itertools

import pytest

from openstack_bastion.bastion.options import IngressPermission
from openstack_bastion.bastion.security import (
    ensure_security_group,
    ensure_security_group_rules,
    rule_equal,
    rules_symmetric_difference,
)
from openstack_bastion.exceptions import (
    AmbiguousResourceError,
    CloudError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
)
from openstack_bastion.resources.openstack import SecurityGroupRule


def make_rule(ether_type="IPv4", prefix="10.250.0.0/16", description="rule A", **kwargs):
    return SecurityGroupRule(direction="ingress", ether_type=ether_type,
                             remote_ip_prefix=prefix, description=description, **kwargs)


def test_symmetric_difference_example():
    current = [make_rule(prefix="10.250.0.0/16"), make_rule(prefix="10.250.0.0/32")]
    wanted = [make_rule(prefix="10.250.0.0/16"), make_rule(ether_type="IPv6", prefix="::/0")]

    to_add, to_delete = rules_symmetric_difference(wanted, current)

    assert to_add == [make_rule(ether_type="IPv6", prefix="::/0")]
    assert to_delete == [make_rule(prefix="10.250.0.0/32")]


def test_rule_equal_ignores_id():
    assert rule_equal(make_rule(), make_rule(id="rule-1"))


@pytest.mark.parametrize("field, value", [
    ("direction", "egress"),
    ("description", "rule B"),
    ("ether_type", "IPv6"),
    ("security_group_id", "sg-2"),
    ("port_range_min", 23),
    ("port_range_max", 23),
    ("protocol", "udp"),
    ("remote_group_id", "sg-3"),
    ("remote_ip_prefix", "10.0.0.0/8"),
])
def test_rule_equal_compares_field(field, value):
    rule = make_rule(security_group_id="sg-1", port_range_min=22, port_range_max=22,
                     protocol="tcp")
    assert not rule_equal(rule, rule.model_copy(update={field: value}))


RULE_POOL = [
    make_rule(prefix="10.250.0.0/16"),
    make_rule(prefix="10.250.0.0/32"),
    make_rule(ether_type="IPv6", prefix="::/0"),
    make_rule(description="rule B"),
    SecurityGroupRule(direction="egress", remote_group_id="sg-workers", description="egress"),
]


@pytest.mark.parametrize("wanted, current", [
    (list(w), list(c))
    for w in itertools.combinations(RULE_POOL, 2)
    for c in itertools.combinations(RULE_POOL, 3)
] + [([], RULE_POOL), (RULE_POOL, []), ([], [])])
def test_symmetric_difference_properties(wanted, current):
    to_add, to_delete = rules_symmetric_difference(wanted, current)

    assert all(any(rule is w for w in wanted) for rule in to_add)
    assert all(any(rule is c for c in current) for rule in to_delete)
    assert not any(rule_equal(a, d) for a in to_add for d in to_delete)

    converged = [c for c in current if not any(c is d for d in to_delete)] + to_add
    assert all(any(rule_equal(w, c) for c in converged) for w in wanted)
    assert all(any(rule_equal(w, c) for w in wanted) for c in converged)


def test_ensure_security_group_creates_when_absent(cloud, log):
    group = ensure_security_group(cloud, "bastion-sg", log)

    assert group.name == "bastion-sg"
    assert cloud.mutations == [("create_security_group", "bastion-sg")]


def test_ensure_security_group_returns_existing(cloud, log):
    existing = cloud.add_security_group("bastion-sg")

    assert ensure_security_group(cloud, "bastion-sg", log) == existing
    assert cloud.mutations == []


def test_ensure_security_group_rejects_duplicates(cloud, log):
    cloud.add_security_group("bastion-sg")
    cloud.add_security_group("bastion-sg")

    with pytest.raises(AmbiguousResourceError):
        ensure_security_group(cloud, "bastion-sg", log)
    assert cloud.mutations == []


@pytest.fixture
def bastion_group(cloud, opt):
    return cloud.add_security_group(opt.security_group_name)


PERMISSIONS = [IngressPermission(ether_type="IPv4", cidr="213.69.151.0/24")]


def test_ensure_rules_creates_ingress_and_egress(cloud, opt, bastion_group, log):
    ensure_security_group_rules(cloud, opt, PERMISSIONS, bastion_group.id, log)

    rules = sorted(cloud.list_rules(bastion_group.id), key=lambda r: r.direction)
    worker_group = cloud.find_security_groups_by_name("cluster1")[0]

    assert [r.direction for r in rules] == ["egress", "ingress"]
    egress, ingress = rules
    assert ingress.description == f"{opt.instance_name}-allow-ssh"
    assert ingress.remote_ip_prefix == "213.69.151.0/24"
    assert (ingress.protocol, ingress.port_range_min, ingress.port_range_max) == ("tcp", 22, 22)
    assert egress.description == f"{opt.instance_name}-egress-worker"
    assert egress.remote_group_id == worker_group.id
    assert egress.remote_ip_prefix is None


def test_ensure_rules_is_idempotent(cloud, opt, bastion_group, log):
    ensure_security_group_rules(cloud, opt, PERMISSIONS, bastion_group.id, log)
    cloud.calls.clear()

    ensure_security_group_rules(cloud, opt, PERMISSIONS, bastion_group.id, log)

    assert cloud.mutations == []


def test_ensure_rules_removes_unwanted_rules(cloud, opt, bastion_group, log):
    stale = cloud.add_rule(make_rule(security_group_id=bastion_group.id, prefix="1.2.3.0/24"))

    ensure_security_group_rules(cloud, opt, PERMISSIONS, bastion_group.id, log)

    assert stale.id not in cloud.rules
    assert len(cloud.list_rules(bastion_group.id)) == 2


def test_ensure_rules_tolerates_stale_current_rules(cloud, opt, bastion_group, log):
    # The rule to add already exists and the rule to delete is already gone,
    # as seen by a reconcile working with an outdated list of rules.
    ensure_security_group_rules(cloud, opt, PERMISSIONS, bastion_group.id, log)
    cloud.calls.clear()
    gone = make_rule(id="rule-gone", security_group_id=bastion_group.id)
    cloud.list_rules = lambda group_id: [gone]

    ensure_security_group_rules(cloud, opt, PERMISSIONS, bastion_group.id, log)

    assert [call[0] for call in cloud.mutations] == ["create_rule", "create_rule", "delete_rule"]


def test_ensure_rules_reports_failing_rule(cloud, opt, bastion_group, log):
    def fail(rule):
        raise CloudError("quota exceeded", status_code=403)
    cloud.create_rule = fail

    with pytest.raises(CloudError, match=f"{opt.instance_name}-allow-ssh") as exc:
        ensure_security_group_rules(cloud, opt, PERMISSIONS, bastion_group.id, log)
    assert exc.value.status_code == 403
    assert not isinstance(exc.value, (ConflictError, NotFoundError))


def test_ensure_rules_requires_worker_group(cloud, opt, bastion_group, log):
    for group in cloud.find_security_groups_by_name("cluster1"):
        del cloud.security_groups[group.id]

    with pytest.raises(ConfigurationError):
        ensure_security_group_rules(cloud, opt, PERMISSIONS, bastion_group.id, log)
