def matrix_shape(shape):
    """(rows, cols) of the row-major 2D view: leading dim x everything else"""
    rows = int(shape[0])
    cols = 1
    for dim in shape[1:]:
        cols *= int(dim)
    return rows, cols


def as_matrix(x, cols=None):
    # Works for numpy arrays and torch tensors alike; no copy when contiguous.
    rows, n_cols = matrix_shape(x.shape)
    if cols is not None:
        n_cols = cols
    return x.reshape((rows, n_cols))


def is_broadcast(rows_x, rows_y):
    return rows_y == 1 and rows_x != 1


def row_step(rows_x, rows_y):
    # y row paired with x row i is i * row_step
    return 0 if is_broadcast(rows_x, rows_y) else 1


def row_index_b(i, rows_x, rows_y):
    return i if rows_y == rows_x else 0
