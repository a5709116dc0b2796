import pytest

from fixednets.core import fixed
from fixednets.core.activations import ReLU, Sigmoid, Softmax, available_activations, get_activation
from fixednets.core.errors import ArithmeticDomainError, InvalidArgumentError
from fixednets.core.fixed import HALF, LN2, SCALE, SIGMOID_BOUND
from fixednets.training.losses import (
    REGISTRY,
    AbsoluteError,
    BinaryCrossEntropy,
    SquaredError,
)


def test_relu_is_exact():
    relu = ReLU()
    values = fixed.to_array([-5 * SCALE, -1, 0, 1, 3 * SCALE + 7])
    assert list(relu.activate_batch(values)) == [0, 0, 0, 1, 3 * SCALE + 7]
    assert list(relu.derivative_batch(values)) == [0, 0, 0, SCALE, SCALE]


def test_sigmoid_bounds_and_saturation():
    sigmoid = Sigmoid()
    assert sigmoid.activate(0) == HALF
    assert sigmoid.activate(SIGMOID_BOUND) == SCALE
    assert sigmoid.activate(-SIGMOID_BOUND) == 0
    for x in range(-25, 26):
        y = sigmoid.activate(x * SCALE)
        assert 0 <= y <= SCALE
    assert sigmoid.derivative_from_output(HALF) == SCALE // 4
    assert sigmoid.stability().saturation_threshold == SIGMOID_BOUND


def test_sigmoid_is_monotonic():
    sigmoid = Sigmoid()
    outputs = [sigmoid.activate(x * SCALE // 4) for x in range(-40, 41)]
    assert outputs == sorted(outputs)


def test_softmax_normalises_with_max_shift():
    softmax = Softmax()
    probs = softmax.activate_batch(fixed.to_array([0, 0]))
    assert list(probs) == [HALF, HALF]
    probs = softmax.activate_batch(fixed.to_array([1000 * SCALE, 1001 * SCALE, 999 * SCALE]))
    assert abs(sum(probs) - SCALE) <= 3
    assert probs[1] > probs[0] > probs[2]


def test_softmax_drops_underflowing_terms():
    probs = Softmax().activate_batch(fixed.to_array([0, -100 * SCALE]))
    assert list(probs) == [SCALE, 0]


def test_softmax_of_very_negative_inputs_stays_normalised():
    probs = Softmax().activate_batch(fixed.to_array([-1000 * SCALE, -1000 * SCALE]))
    assert list(probs) == [HALF, HALF]
    probs = Softmax().activate_batch(fixed.to_array([-1000 * SCALE, -900 * SCALE]))
    assert list(probs) == [0, SCALE]


def test_activation_registry():
    assert {"linear", "relu", "sigmoid", "softmax"} <= set(available_activations())
    assert isinstance(get_activation("ReLU"), ReLU)
    with pytest.raises(InvalidArgumentError):
        get_activation("tanh")


@pytest.mark.parametrize("loss", [SquaredError(), AbsoluteError()])
def test_regression_losses_are_non_negative(loss):
    for p in (-2 * SCALE, -1, 0, HALF, 3 * SCALE):
        for t in (-SCALE, 0, SCALE):
            assert loss.calculate_loss(p, t) >= 0


def test_squared_error_values():
    loss = SquaredError()
    assert loss.calculate_loss(3 * SCALE, SCALE) == 4 * SCALE
    assert loss.calculate_gradient(3 * SCALE, SCALE) == 4 * SCALE
    batch = loss.calculate_batch_loss([SCALE, 0], [0, 0])
    assert batch.total == SCALE
    assert batch.mean == HALF


def test_squared_error_is_zero_only_for_exact_match():
    loss = SquaredError()
    assert loss.calculate_loss(SCALE, SCALE) == 0
    assert loss.calculate_loss(SCALE + 10**8, SCALE) == 1
    assert loss.calculate_loss(SCALE, SCALE + 1) == 1
    assert loss.calculate_loss(SCALE + 10**9, SCALE) == 1
    assert loss.calculate_loss(SCALE + 10**10, SCALE) == 100


def test_squared_error_descaled_gradient():
    loss = SquaredError(descale_gradient=True)
    assert loss.calculate_gradient(3 * SCALE, SCALE) == 4
    assert loss.calculate_gradient(SCALE, 3 * SCALE) == -4
    assert loss.calculate_gradient(SCALE + HALF, SCALE) == 1
    assert loss.calculate_gradient(SCALE + 10**17, SCALE) == 0
    assert loss.calculate_loss(3 * SCALE, SCALE) == SquaredError().calculate_loss(3 * SCALE, SCALE)
    assert REGISTRY.get("mse_descaled").descale_gradient
    assert not REGISTRY.get("mse").descale_gradient


def test_bce_loss_and_gradient():
    bce = BinaryCrossEntropy()
    assert abs(bce.calculate_loss(HALF, SCALE) - LN2) < 10
    assert bce.calculate_loss(SCALE, SCALE) >= 0
    assert bce.calculate_loss(0, SCALE) > 0
    assert bce.calculate_gradient(HALF, 0) == HALF


def test_bce_validates_targets_and_predictions():
    bce = BinaryCrossEntropy()
    with pytest.raises(InvalidArgumentError):
        bce.calculate_loss(HALF, HALF)
    with pytest.raises(ArithmeticDomainError):
        bce.calculate_loss(SCALE + 1, SCALE)
    with pytest.raises(ArithmeticDomainError):
        bce.calculate_gradient(-1, 0)


def test_batch_losses_reject_bad_input():
    loss = SquaredError()
    with pytest.raises(InvalidArgumentError):
        loss.calculate_batch_loss([], [])
    with pytest.raises(InvalidArgumentError):
        loss.calculate_batch_gradient([0, 1], [0])


def test_loss_registry_auto_resolution():
    assert REGISTRY.resolve("auto", task_type="regression").name == "mse"
    assert REGISTRY.resolve("auto", task_type="binary").name == "bce"
    assert set(REGISTRY.names()) >= {"mse", "mae", "bce"}
    with pytest.raises(InvalidArgumentError):
        REGISTRY.resolve("hinge")
