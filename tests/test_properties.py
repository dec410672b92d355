"""
Property-based tests for reconciliation invariants.

Random desired states are converged against random pre-populated
directories; names come from small pools so collisions are common.
"""

from hypothesis import HealthCheck, given, settings, strategies as st

from adsync.desired.models import DesiredState, GroupRecord, UserRecord
from adsync.reconcile import DirectoryInspector, OpKind, Reconciler, Status, plan
from adsync.remote import execute

from conftest import BASE_DN, FakeDirectory


# =============================================================================
# STRATEGIES
# =============================================================================

ou_names = st.sampled_from(["Sales", "sales", "HR", "IT", "Ops"])
group_names = st.sampled_from(["Staff", "Admins", "VPN", "Mail"])
user_names = st.sampled_from(["alice", "bob", "carol", "dave", "Eve"])

group_records = st.lists(
    st.builds(GroupRecord, name=group_names, ou_name=ou_names),
    max_size=4,
    unique_by=lambda g: g.name.lower(),
)

user_records = st.lists(
    st.builds(
        UserRecord,
        name=user_names,
        ou_name=ou_names,
        member_of=st.lists(group_names, max_size=3).map(tuple),
    ),
    max_size=5,
    unique_by=lambda u: u.name.lower(),
)

desired_states = st.builds(
    lambda g, u: DesiredState(groups=tuple(g), users=tuple(u)),
    group_records,
    user_records,
)


@st.composite
def directories(draw):
    d = FakeDirectory()
    for ou in draw(st.lists(ou_names, max_size=3)):
        d.seed_ou(ou)
    for name in draw(st.lists(group_names, max_size=2, unique=True)):
        d.seed_group(name, draw(ou_names))
    for name in draw(st.lists(user_names, max_size=3, unique=True)):
        d.seed_user(name, draw(ou_names))
    for group in list(d.groups.values()):
        group["members"] |= {u for u in d.users if draw(st.booleans())}
    return d


def converge(directory, desired):
    reconciler = Reconciler(desired, base_dn=BASE_DN)
    results, error = execute(directory, reconciler(directory))
    assert error is None
    return reconciler.plan, results


# =============================================================================
# PROPERTIES
# =============================================================================


@settings(max_examples=150, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(directories(), desired_states)
def test_second_run_writes_nothing(directory, desired):
    """Property: a second run never creates or adds anything."""
    converge(directory, desired)
    directory.writes.clear()

    _, results = converge(directory, desired)

    assert not [r for r in results if r.status in (Status.CREATED, Status.ADDED)]


@settings(max_examples=150, deadline=None)
@given(directories(), desired_states)
def test_existing_names_are_never_created(directory, desired):
    """Property: no create operation targets a name already in the directory."""
    ous, groups, users = set(directory.ous), set(directory.groups), set(directory.users)

    p = plan(DirectoryInspector(directory), desired, BASE_DN)

    for op in p.operations:
        if op.kind is OpKind.CREATE_OU:
            assert op.name.lower() not in ous
        elif op.kind is OpKind.CREATE_GROUP:
            assert op.name.lower() not in groups
        elif op.kind is OpKind.CREATE_USER:
            assert op.name.lower() not in users


@settings(max_examples=150, deadline=None)
@given(directories(), desired_states)
def test_every_membership_holds_or_is_reported(directory, desired):
    """Property: each requested membership exists afterwards or its operation is reported as not done."""
    _, results = converge(directory, desired)
    not_done = {
        (r.operation.name.lower(), r.operation.member.lower())
        for r in results
        if r.operation is not None
        and r.operation.kind is OpKind.ADD_MEMBER
        and r.status in (Status.FAILED, Status.SKIPPED)
    }

    for u in desired.users:
        for g in u.member_of:
            assert directory.is_member(g, u.name) or (g.lower(), u.name.lower()) in not_done


@settings(max_examples=150, deadline=None)
@given(directories(), desired_states)
def test_ou_creation_precedes_use(directory, desired):
    """Property: an OU is created before any group or user placed in it."""
    p = plan(DirectoryInspector(directory), desired, BASE_DN)

    created_at = {}
    for i, op in enumerate(p.operations):
        if op.kind is OpKind.CREATE_OU:
            created_at[op.name.lower()] = i

    for i, op in enumerate(p.operations):
        if op.kind in (OpKind.CREATE_GROUP, OpKind.CREATE_USER):
            ou = op.path.split(",", 1)[0][len("OU="):].lower()
            if ou in created_at:
                assert created_at[ou] < i


@settings(max_examples=100, deadline=None)
@given(directories(), desired_states)
def test_each_entity_written_at_most_once(directory, desired):
    """Property: a single run writes each OU, group, user and membership at most once."""
    converge(directory, desired)
    assert len(directory.writes) == len(set(w.lower() for w in directory.writes))
