"""Tests for ImportReconciler against a mock DynamoDB store."""
from unittest.mock import Mock, patch

import pytest

from conftest import make_event, make_match
from processor.field_resolver import FieldResolver
from processor.models import FieldMapping, ImportSummary
from processor.reconciler import ImportReconciler, match_title


@pytest.fixture
def reconciler(calendar_store):
    calendar_store.initialize_default_field_mappings()
    return ImportReconciler(calendar_store)


def active_events(store):
    return [e for e in store.get_all_events().values() if e.status == 'active']


def test_end_to_end_create_from_content_key(reconciler, calendar_store):
    """Test a match without upstream ID is stored under its content key."""
    match = make_match(
        external_id='',
        team_home='SV A',
        team_away='Club',
        date='2026-03-01',
        start_time='15:00',
        end_time='17:00',
        team='herren',
        is_home_game=True,
        opponent='SV A',
        competition='Kreisliga'
    )

    summary = reconciler.reconcile([match])

    assert summary.created_count == 1
    assert summary.error_count == 0

    events = active_events(calendar_store)
    assert len(events) == 1
    event = events[0]
    assert event.title == 'SV A vs Club'
    assert event.external_id == 'sv a|club|2026-03-01|kreisliga'
    assert event.field == 'a-platz'
    assert event.source == 'bfv'
    assert event.event_type == 'match'
    assert event.status == 'active'


def test_reconcile_is_idempotent(reconciler, calendar_store):
    """Test replaying a batch creates and updates nothing."""
    matches = [
        make_match(external_id='bfv-1'),
        make_match(external_id='bfv-2', team_away='SV B', opponent='SV B',
                   date='2026-03-08'),
        make_match(external_id='', team_home='SV C', team_away='TSV Greding',
                   is_home_game=False, opponent='SV C', date='2026-03-15'),
    ]

    first = reconciler.reconcile(matches)
    before = calendar_store.get_all_events()

    with patch.object(calendar_store, 'update', wraps=calendar_store.update) as update, \
            patch.object(calendar_store, 'create', wraps=calendar_store.create) as create:
        second = reconciler.reconcile(matches)

    assert first.created_count == 3
    assert second.created_count == 0
    assert second.updated_count == 0
    assert second.unchanged_count == 3
    update.assert_not_called()
    create.assert_not_called()
    assert calendar_store.get_all_events() == before


def test_changed_time_updates_event(reconciler, calendar_store):
    """Test a moved kickoff updates the stored event in place."""
    reconciler.reconcile([make_match()])

    summary = reconciler.reconcile([
        make_match(start_time='18:00', end_time='20:00')
    ])

    assert summary.updated_count == 1
    events = active_events(calendar_store)
    assert len(events) == 1
    assert events[0].start_time == '18:00'
    assert events[0].end_time == '20:00'


def test_fallback_match_adopts_new_external_id(reconciler, calendar_store):
    """Test a changed upstream ID is matched by team names, not duplicated."""
    reconciler.reconcile([make_match(external_id='bfv-old')])

    summary = reconciler.reconcile([
        make_match(external_id='bfv-new', start_time='16:00', end_time='18:00')
    ])

    assert summary.created_count == 0
    assert summary.updated_count == 1

    events = active_events(calendar_store)
    assert len(events) == 1
    assert events[0].external_id == 'bfv-new'
    assert events[0].start_time == '16:00'
    assert calendar_store.find_by_source_and_external_id('bfv', 'bfv-old') is None


def test_fallback_match_with_only_new_id_is_update(reconciler, calendar_store):
    """Test an ID change alone is written so later runs match by ID."""
    reconciler.reconcile([make_match(external_id='bfv-old')])

    summary = reconciler.reconcile([make_match(external_id='bfv-new')])
    replay = reconciler.reconcile([make_match(external_id='bfv-new')])

    assert summary.updated_count == 1
    assert replay.unchanged_count == 1
    assert active_events(calendar_store)[0].external_id == 'bfv-new'


def test_fallback_ignores_archived_events(reconciler, calendar_store):
    """Test team-name fallback only considers active events."""
    reconciler.reconcile([make_match(external_id='bfv-old')])
    old = calendar_store.find_by_source_and_external_id('bfv', 'bfv-old')
    calendar_store.archive(old.event_id)

    summary = reconciler.reconcile([make_match(external_id='bfv-new')])

    assert summary.created_count == 1
    assert len(active_events(calendar_store)) == 1


def test_primary_lookup_takes_precedence(calendar_store):
    """Test an exact ID hit wins over a team-name hit."""
    calendar_store.create(make_event(event_id='by-teams', external_id='other-id'))
    calendar_store.create(make_event(event_id='by-id', external_id='bfv-1001'))
    reconciler = ImportReconciler(calendar_store)

    resolved = reconciler._resolve_existing(make_match(), 'bfv-1001')

    assert resolved.event_id == 'by-id'


def test_resolve_existing_falls_back_to_teams():
    """Test the team lookup runs only after the ID lookup misses."""
    store = Mock()
    store.find_by_source_and_external_id.return_value = None
    store.find_by_source_and_teams.return_value = make_event(event_id='fallback')
    reconciler = ImportReconciler(store, field_resolver=Mock())

    resolved = reconciler._resolve_existing(make_match(), 'bfv-1001')

    assert resolved.event_id == 'fallback'
    store.find_by_source_and_external_id.assert_called_once_with('bfv', 'bfv-1001')
    store.find_by_source_and_teams.assert_called_once_with('bfv', 'TSV Greding', 'SV A')


def test_away_game_never_gets_field(reconciler, calendar_store):
    """Test away games stay without field even when a mapping exists."""
    calendar_store.put_field_mapping(
        FieldMapping(team='herren', event_type='match', default_field='b-platz')
    )

    reconciler.reconcile([
        make_match(team_home='SV A', team_away='TSV Greding', is_home_game=False)
    ])

    assert active_events(calendar_store)[0].field is None


def test_home_game_without_mapping_has_no_field(calendar_store):
    """Test a missing field mapping leaves the field unassigned."""
    reconciler = ImportReconciler(calendar_store)

    summary = reconciler.reconcile([make_match(team='damen')])

    assert summary.created_count == 1
    assert active_events(calendar_store)[0].field is None


def test_update_clears_field_for_away_game(reconciler, calendar_store):
    """Test an update of an away game removes a stored field."""
    calendar_store.create(make_event(
        team_home='SV A', team_away='TSV Greding', is_home_game=False,
        field='a-platz'
    ))

    summary = reconciler.reconcile([make_match(
        team_home='SV A', team_away='TSV Greding', is_home_game=False,
        start_time='14:00', end_time='16:00'
    )])

    assert summary.updated_count == 1
    assert calendar_store.get_event('event-1').field is None


def test_archive_missing_archives_absent_events(reconciler, calendar_store):
    """Test events no longer listed are archived when requested."""
    reconciler.reconcile([
        make_match(external_id='bfv-1'),
        make_match(external_id='bfv-2', team_away='SV B', opponent='SV B'),
    ])

    summary = reconciler.reconcile(
        [make_match(external_id='bfv-1')],
        archive_missing=True
    )

    assert summary.archived_count == 1
    archived = calendar_store.find_by_source_and_external_id('bfv', 'bfv-2')
    assert archived.status == 'archived'
    kept = calendar_store.find_by_source_and_external_id('bfv', 'bfv-1')
    assert kept.status == 'active'


def test_archive_missing_disabled_keeps_events(reconciler, calendar_store):
    """Test absent events stay active without archive_missing."""
    reconciler.reconcile([
        make_match(external_id='bfv-1'),
        make_match(external_id='bfv-2', team_away='SV B', opponent='SV B'),
    ])

    summary = reconciler.reconcile([make_match(external_id='bfv-1')])

    assert summary.archived_count == 0
    event = calendar_store.find_by_source_and_external_id('bfv', 'bfv-2')
    assert event.status == 'active'


def test_archive_missing_skips_empty_batch(reconciler, calendar_store):
    """Test an empty batch never archives the whole calendar."""
    reconciler.reconcile([make_match(external_id='bfv-1')])

    summary = reconciler.reconcile([], archive_missing=True)

    assert summary.archived_count == 0
    assert len(active_events(calendar_store)) == 1


def test_archive_missing_leaves_manual_events(reconciler, calendar_store):
    """Test manually entered events are never archived by an import."""
    calendar_store.create(make_event(
        event_id='manual-1', source='manual', external_id=None,
        event_type='training', title='Training'
    ))

    summary = reconciler.reconcile([make_match()], archive_missing=True)

    assert summary.archived_count == 0
    assert calendar_store.get_event('manual-1').status == 'active'


def test_archive_failure_does_not_fail_import(reconciler, calendar_store):
    """Test archival errors are logged and leave the counts intact."""
    with patch.object(calendar_store, 'list_active_external_ids',
                      side_effect=RuntimeError('scan failed')):
        summary = reconciler.reconcile([make_match()], archive_missing=True)

    assert summary.created_count == 1
    assert summary.archived_count == 0
    assert summary.error_count == 0


def test_record_error_does_not_abort_batch(reconciler, calendar_store):
    """Test a failing record is reported and the rest is imported."""
    real_create = calendar_store.create

    def failing_create(event):
        if event.team_away == 'SV B':
            raise RuntimeError('write failed')
        return real_create(event)

    matches = [
        make_match(external_id='bfv-1'),
        make_match(external_id='bfv-2', team_away='SV B', opponent='SV B'),
        make_match(external_id='bfv-3', team_away='SV C', opponent='SV C'),
    ]

    with patch.object(calendar_store, 'create', side_effect=failing_create):
        summary = reconciler.reconcile(matches)

    assert summary.created_count == 2
    assert summary.error_count == 1
    assert summary.errors == ['TSV Greding vs SV B: write failed']


def test_blank_location_only_written_with_other_changes(reconciler, calendar_store):
    """Test a blank location alone is no update, but is written by one."""
    reconciler.reconcile([make_match(location='Sportpark Nord')])

    unchanged = reconciler.reconcile([make_match(location=None)])
    assert unchanged.unchanged_count == 1
    assert active_events(calendar_store)[0].location == 'Sportpark Nord'

    updated = reconciler.reconcile([make_match(location=None, start_time='18:00')])
    assert updated.updated_count == 1
    assert active_events(calendar_store)[0].location is None


@pytest.mark.parametrize('malformed', [None, {'team_home': 'SV A'}])
def test_malformed_record_does_not_abort_batch(reconciler, calendar_store, malformed):
    """Test a record that is not a match is counted and the batch goes on."""
    summary = reconciler.reconcile([malformed, make_match()])

    assert summary.error_count == 1
    assert summary.created_count == 1
    assert summary.errors[0].startswith('? vs ?: ')
    assert len(calendar_store.list_import_history()) == 1


def test_duplicate_in_batch_resolves_to_existing(reconciler, calendar_store):
    """Test the same fixture twice in one batch yields a single event."""
    summary = reconciler.reconcile([make_match(), make_match()])

    assert summary.created_count == 1
    assert summary.unchanged_count == 1
    assert len(calendar_store.get_all_events()) == 1


def test_concurrent_create_is_record_error(reconciler, calendar_store):
    """Test losing a create race surfaces as a record-level error."""
    # Another run stores the fixture between our lookup and our create
    with patch.object(calendar_store, 'find_by_source_and_external_id', return_value=None), \
            patch.object(calendar_store, 'find_by_source_and_teams', return_value=None):
        calendar_store.create(make_event(event_id='other-run', team_away='SV Z'))
        summary = reconciler.reconcile([make_match()])

    assert summary.created_count == 0
    assert summary.error_count == 1
    assert 'bfv-1001' in summary.errors[0]
    assert len(calendar_store.get_all_events()) == 1


def test_import_history_is_recorded(reconciler, calendar_store):
    """Test every run appends one history record with counts and errors."""
    with patch.object(calendar_store, 'create', side_effect=RuntimeError('boom')):
        reconciler.reconcile([make_match()], source_label='spielplan.pdf')
    reconciler.reconcile([make_match()])

    history = calendar_store.list_import_history()

    assert len(history) == 2
    failed = [h for h in history if h.file_name == 'spielplan.pdf'][0]
    assert failed.error_count == 1
    assert failed.notes == 'TSV Greding vs SV A: boom'
    succeeded = [h for h in history if h.file_name is None][0]
    assert succeeded.created_count == 1
    assert succeeded.notes is None


def test_history_write_failure_propagates(reconciler, calendar_store):
    """Test a failed history write fails the import."""
    with patch.object(calendar_store, 'append_import_history',
                      side_effect=RuntimeError('history unavailable')):
        with pytest.raises(RuntimeError):
            reconciler.reconcile([make_match()])


def test_invalid_batch_raises():
    """Test a missing batch is rejected before any work."""
    store = Mock()
    reconciler = ImportReconciler(store, field_resolver=FieldResolver(store))

    with pytest.raises(ValueError):
        reconciler.reconcile(None)

    store.append_import_history.assert_not_called()


def test_summary_shape():
    """Test the summary renders its persisted camelCase shape."""
    summary = ImportSummary(created_count=1, error_count=1, errors=['x'])

    assert summary.to_dict() == {
        'createdCount': 1,
        'updatedCount': 0,
        'unchangedCount': 0,
        'archivedCount': 0,
        'errorCount': 1,
        'errors': ['x'],
    }


def test_title_ignores_orientation():
    """Test titles always read home vs away."""
    assert match_title(make_match(is_home_game=False)) == 'TSV Greding vs SV A'
