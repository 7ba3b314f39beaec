"""Registry references, authentication and signature repository clients."""