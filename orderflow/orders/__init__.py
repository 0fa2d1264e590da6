"""Order lifecycle: state machine, store and status orchestration"""
