from movement.state import MovementState, MovementStatus, advance

STATIONARY = MovementStatus.STATIONARY
WALKING = MovementStatus.WALKING
VEHICLE = MovementStatus.VEHICLE


def test_initial_state_is_stationary() -> None:
    state = MovementState()
    assert state.confirmed == STATIONARY
    assert state.candidate == STATIONARY
    assert state.candidate_streak == 0


def test_advance_does_not_mutate_input() -> None:
    state = MovementState()
    advance(state, WALKING)
    assert state == MovementState()


def test_first_deviation_becomes_candidate() -> None:
    state = advance(MovementState(), WALKING)
    assert state == MovementState(
        confirmed=STATIONARY, candidate=WALKING, candidate_streak=1
    )


def test_second_agreeing_deviation_confirms() -> None:
    state = advance(advance(MovementState(), WALKING), WALKING)
    assert state.confirmed == WALKING


def test_observing_confirmed_resets_candidate() -> None:
    state = advance(MovementState(), VEHICLE)
    state = advance(state, STATIONARY)
    assert state == MovementState(
        confirmed=STATIONARY, candidate=STATIONARY, candidate_streak=0
    )


def test_alternating_candidates_never_confirm() -> None:
    state = MovementState()
    for observed in (WALKING, VEHICLE, WALKING, VEHICLE):
        state = advance(state, observed)
        assert state.confirmed == STATIONARY
        assert state.candidate_streak == 1


def test_custom_threshold() -> None:
    state = MovementState()
    for _ in range(2):
        state = advance(state, VEHICLE, threshold=3)
    assert state.confirmed == STATIONARY
    state = advance(state, VEHICLE, threshold=3)
    assert state.confirmed == VEHICLE


def test_labels() -> None:
    assert STATIONARY.label == "Parada"
    assert WALKING.label == "Caminhando"
    assert VEHICLE.label == "Em Veículo"
