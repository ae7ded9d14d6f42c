"""
Transform Tests - 变换测试模块
===============================

- test_noop_removal.py          : remove_noop_split, remove_noop_padv2
- test_dilation_to_maxpool.py   : dilation2d_to_maxpool2d
- test_swap_transpose.py        : swap_trans_relu, swap_trans_mul_add
- test_fold_transposed_pads.py  : fold_transposed_pads
"""
