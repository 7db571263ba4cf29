DEFAULT_TEST_SEED = 42
