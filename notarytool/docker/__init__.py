"""Docker schema 2 manifest generation from ``docker save`` archives."""