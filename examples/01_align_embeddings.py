import numpy as np
from loguru import logger

from cosgrad.backend import get_backend
from cosgrad.tensor import Tensor

# Pull a batch of random embeddings toward one anchor direction by gradient
# ascent on their cosine similarity with it.


def main(rows=64, dim=32, steps=200, lr=0.5):
    rng = np.random.default_rng(0)
    backend = get_backend()
    emb = Tensor(backend.wrap(rng.standard_normal((rows, dim)).astype(np.float32)))
    # a frozen anchor: its gradient slot is never requested
    anchor = Tensor(
        backend.wrap(rng.standard_normal((1, dim)).astype(np.float32)),
        requires_grad=False,
    )

    for step in range(steps):
        emb.grad = None
        score = emb.cos_sim(anchor).mean()
        score.backward()
        emb.data = backend.add(emb.data, backend.mul(emb.grad, lr))
        if step % 50 == 0:
            logger.info(f"step {step:4d} mean cos sim {backend.unwrap(score.data).item():.4f}")

    final = emb.cos_sim(anchor).mean()
    logger.info(f"final mean cos sim {backend.unwrap(final.data).item():.4f}")


if __name__ == "__main__":
    main()
