"""Japanese income, resident tax and furusato donation limit estimator."""
