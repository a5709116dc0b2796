"""Every registered strategy honours the protocol the network relies on."""

import pytest

from fixednets.core import fixed
from fixednets.core.activations import available_activations, get_activation
from fixednets.core.fixed import SCALE
from fixednets.core.optimizers import build_optimizer
from fixednets.training.losses import REGISTRY

VECTOR = fixed.to_array([-3 * SCALE, -1, 0, SCALE // 3, 2 * SCALE])


@pytest.mark.parametrize("name", list(available_activations()))
def test_activation_contract(name):
    activation = get_activation(name)
    outputs = activation.activate_batch(VECTOR)
    assert outputs.shape == VECTOR.shape
    assert activation.derivative_batch(VECTOR).shape == VECTOR.shape
    assert activation.derivative_from_output_batch(outputs).shape == VECTOR.shape
    assert all(isinstance(value, int) for value in outputs)
    if activation.is_bounded:
        assert all(0 <= value <= SCALE for value in outputs)
    assert activation.stability() is not None


@pytest.mark.parametrize("name", list(REGISTRY.names()))
def test_loss_contract(name):
    loss = REGISTRY.get(name)
    predictions = [0, SCALE // 4, SCALE // 2, SCALE]
    targets = [0, SCALE, 0, SCALE]
    batch = loss.calculate_batch_loss(predictions, targets)
    assert batch.total >= 0
    assert batch.mean == batch.total // len(predictions)
    gradients = loss.calculate_batch_gradient(predictions, targets)
    assert len(gradients) == len(predictions)
    assert gradients[0] == 0


@pytest.mark.parametrize("name", ["sgd", "momentum", "adam"])
def test_optimizer_contract(name):
    optimizer = build_optimizer(name)
    params = fixed.to_array([[SCALE, 0], [SCALE // 2, 3 * SCALE]])
    grads = fixed.to_array([[SCALE, SCALE], [-SCALE, 0]])
    result = optimizer.update(params, grads, 10**16, key=(0, "weights"))
    assert result.parameters.shape == params.shape
    assert all(value >= 0 for value in result.parameters.flat)
    assert result.magnitude >= 0
    optimizer.reset()
    assert optimizer.state_for((0, "weights")) is None
